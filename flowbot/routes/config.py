# /flowbot/routes/config.py

import json
import structlog
from fastapi import APIRouter, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from flowbot.config.settings import settings
from flowbot.models.api import ConfigSavedResponse, ErrorResponse
from flowbot.services.config_service import config_service
from flowbot.utils.rate_limiter import limiter
from flowbot.workflows.errors import ValidationError

# Administrative endpoints for uploading and reading the active flow
# configuration. Uploads are validated in full before anything is stored.

router = APIRouter(
    prefix="/config",
    tags=["Configuration"]
)

log = structlog.get_logger(__name__)


def _error(status_code: int, error: str, details=None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(body, status_code=status_code)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ConfigSavedResponse)
@limiter.limit(f"{settings.config_rate_limit_per_minute}/minute")
async def create_config(request: Request):
    """Create or replace the active chatbot flow configuration."""
    raw = await request.body()
    if not raw.strip():
        return _error(400, "Request body is required and must contain a valid JSON configuration")

    try:
        body = json.loads(raw)
    except ValueError:
        return _error(400, "Request body is required and must contain a valid JSON configuration")

    if not body:
        return _error(400, "Request body is required and must contain a valid JSON configuration")

    try:
        record = await config_service.save_config(body)
    except ValidationError as e:
        log.warning("Configuration rejected.", error_count=len(e.errors))
        return _error(400, "Invalid configuration", e.errors)
    except Exception as e:
        log.exception("Failed to save configuration.")
        return _error(500, "Failed to save configuration", str(e))

    log.info("Configuration saved.", config_id=record["id"], blocks=len(record["blocks"]))
    return JSONResponse(
        ConfigSavedResponse(id=record["id"]).model_dump(),
        status_code=status.HTTP_201_CREATED,
    )


@router.get("")
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def get_config(request: Request):
    """Get the current chatbot flow configuration."""
    try:
        document = await config_service.get_config_document()
    except Exception as e:
        log.exception("Failed to retrieve configuration.")
        return _error(500, "Failed to retrieve configuration", str(e))

    if document is None:
        return _error(404, "No configuration found")

    return JSONResponse(jsonable_encoder(document))
