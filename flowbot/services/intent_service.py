# /flowbot/services/intent_service.py

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
from google import genai
from google.genai.types import GenerateContentConfig, HttpOptions
from openai import AsyncOpenAI
from rapidfuzz import process, fuzz, utils
from flowbot.config.settings import settings
from flowbot.config.persona import INTENT_SYSTEM_PROMPT, INTENT_PROMPT_TEMPLATE, INTENT_LINE_TEMPLATE
from flowbot.utils.circuit_breaker import CircuitBreaker
from flowbot.utils.metrics import intent_requests_counter
from flowbot.workflows.errors import ClassificationFailure


# This service maps free user text onto one of the labeled intents of a
# detect_intent block. It never raises: provider errors, timeouts and answers
# outside the offered labels all come back as a no-match result.

logger = logging.getLogger(__name__)

NO_MATCH = "unknown"


@dataclass(frozen=True)
class IntentResult:
    """Outcome of a classification: a label from the options, or no match with a reason."""
    label: Optional[str] = None
    reason: Optional[str] = None
    provider: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.label is not None

    @classmethod
    def match(cls, label: str, provider: str) -> "IntentResult":
        return cls(label=label, provider=provider)

    @classmethod
    def no_match(cls, reason: str, provider: Optional[str] = None) -> "IntentResult":
        return cls(label=None, reason=reason, provider=provider)


class IntentService:
    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        gemini_api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        if openai_api_key:
            self.openai_client = AsyncOpenAI(api_key=openai_api_key)
        else:
            self.openai_client = None

        if gemini_api_key:
            http_options = HttpOptions(api_version='v1')
            self.gemini_client = genai.Client(api_key=gemini_api_key, http_options=http_options)
        else:
            self.gemini_client = None

        self.timeout = timeout or settings.intent_timeout_seconds
        self.openai_breaker = CircuitBreaker("openai")
        self.gemini_breaker = CircuitBreaker("gemini")

    @property
    def has_ai_provider(self) -> bool:
        return self.openai_client is not None or self.gemini_client is not None

    async def classify(
        self,
        text: str,
        options: Sequence[Dict[str, object]],
        timeout: Optional[float] = None,
    ) -> IntentResult:
        """
        Classify `text` against `options` ([{label, keywords}]).

        The whole provider chain is bounded by `timeout`; a timeout is
        reported exactly like a provider failure.
        """
        if not options:
            return IntentResult.no_match("no-options")

        bound = timeout if timeout is not None else self.timeout
        try:
            return await asyncio.wait_for(self._classify_with_failover(text, options), timeout=bound)
        except asyncio.TimeoutError:
            logger.warning(f"Intent classification timed out after {bound}s (message length {len(text)}).")
            intent_requests_counter.labels(provider="chain", status="timeout").inc()
            return IntentResult.no_match("timeout")
        except ClassificationFailure as e:
            intent_requests_counter.labels(provider="chain", status="error").inc()
            return IntentResult.no_match(e.reason)
        except Exception as e:
            logger.error(f"Intent classification failed: {type(e).__name__}: {e}")
            intent_requests_counter.labels(provider="chain", status="error").inc()
            return IntentResult.no_match("error")

    async def _classify_with_failover(self, text: str, options: Sequence[Dict[str, object]]) -> IntentResult:
        """Tries OpenAI first, then Gemini; keyword matching is used only when neither is configured."""
        if not self.has_ai_provider:
            return self.match_keywords(text, options)

        labels = [str(option["label"]) for option in options]
        prompt = self.create_intent_prompt(text, options)

        if self.openai_client:
            try:
                answer = await self.openai_breaker.call(self._classify_openai, prompt)
                return self._resolve_answer(answer, labels, "openai")
            except Exception as e:
                logger.error(f"OpenAI intent detection failed: {e}. Trying next provider.")
                intent_requests_counter.labels(provider="openai", status="error").inc()

        if self.gemini_client:
            try:
                answer = await self.gemini_breaker.call(self._classify_gemini, prompt)
                return self._resolve_answer(answer, labels, "gemini")
            except Exception as e:
                logger.error(f"Gemini intent detection failed: {e}")
                intent_requests_counter.labels(provider="gemini", status="error").inc()

        raise ClassificationFailure("error")

    def _resolve_answer(self, answer: Optional[str], labels: List[str], provider: str) -> IntentResult:
        """Only a label offered to the model counts; anything else is a no-match."""
        cleaned = (answer or "").strip().strip('"\'').strip()
        if cleaned in labels:
            intent_requests_counter.labels(provider=provider, status="success").inc()
            return IntentResult.match(cleaned, provider)

        intent_requests_counter.labels(provider=provider, status="no_match").inc()
        if cleaned and cleaned != NO_MATCH:
            logger.info(f"{provider} returned a label outside the offered intents; treating as no match.")
        return IntentResult.no_match("out-of-vocabulary" if cleaned and cleaned != NO_MATCH else "no-match", provider)

    async def _classify_openai(self, prompt: str) -> str:
        response = await self.openai_client.chat.completions.create(
            model=settings.openai_model,
            messages=[
                {"role": "system", "content": INTENT_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=settings.intent_temperature,
            max_tokens=settings.intent_max_tokens,
        )
        return response.choices[0].message.content or ""

    async def _classify_gemini(self, prompt: str) -> str:
        response = await asyncio.to_thread(
            self.gemini_client.models.generate_content,
            model=settings.gemini_model,
            contents=f"{INTENT_SYSTEM_PROMPT}\n\n{prompt}",
            config=GenerateContentConfig(
                temperature=settings.intent_temperature,
                max_output_tokens=settings.intent_max_tokens,
            ),
        )
        return response.text or ""

    def create_intent_prompt(self, text: str, options: Sequence[Dict[str, object]]) -> str:
        """Creates the prompt listing every intent with its keywords."""
        intent_lines = "\n".join(
            INTENT_LINE_TEMPLATE.format(
                index=index,
                label=option["label"],
                keywords=", ".join(option.get("keywords") or []),
            )
            for index, option in enumerate(options, start=1)
        )
        return INTENT_PROMPT_TEMPLATE.format(message=text, intent_lines=intent_lines, no_match=NO_MATCH)

    def match_keywords(self, text: str, options: Sequence[Dict[str, object]]) -> IntentResult:
        """Fuzzy keyword matching used when no AI provider is configured."""
        keywords: List[str] = []
        owners: List[str] = []
        for option in options:
            for keyword in option.get("keywords") or []:
                keywords.append(keyword)
                owners.append(str(option["label"]))

        if not text or not keywords:
            intent_requests_counter.labels(provider="keyword", status="no_match").inc()
            return IntentResult.no_match("no-match", "keyword")

        best = process.extractOne(
            text,
            keywords,
            scorer=fuzz.partial_ratio,
            processor=utils.default_process,
            score_cutoff=settings.keyword_match_threshold,
        )
        if best is None:
            intent_requests_counter.labels(provider="keyword", status="no_match").inc()
            return IntentResult.no_match("no-match", "keyword")

        _, score, index = best
        logger.debug(f"Keyword match '{keywords[index]}' scored {score:.1f}")
        intent_requests_counter.labels(provider="keyword", status="success").inc()
        return IntentResult.match(owners[index], "keyword")


# Globally accessible instance
intent_service = IntentService(settings.openai_api_key, settings.gemini_api_key)
