# /flowbot/routes/sessions.py

from fastapi import APIRouter, HTTPException, Query, Request

from flowbot.config.settings import settings
from flowbot.models.api import APIResponse, SessionPage
from flowbot.services.history_service import history_service, PAGINATION_DEFAULT_LIMIT, PAGINATION_MAX_LIMIT
from flowbot.utils.rate_limiter import limiter

router = APIRouter(
    prefix="/sessions",
    tags=["Sessions"]
)


@router.get("", response_model=APIResponse)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def list_sessions(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(PAGINATION_DEFAULT_LIMIT, ge=1, le=PAGINATION_MAX_LIMIT),
):
    """Get chat sessions and their transcripts, most recently active first."""
    result = await history_service.list_sessions(page=page, limit=limit)
    session_page = SessionPage.model_validate(result)
    return APIResponse(
        success=True,
        message=f"Retrieved {len(session_page.sessions)} sessions",
        data=session_page.model_dump(by_alias=True),
    )


@router.get("/{session_id}", response_model=APIResponse)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def get_session(session_id: str, request: Request):
    """Get one chat session with its full transcript."""
    session = await history_service.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    return APIResponse(
        success=True,
        message="Session retrieved successfully.",
        data={"session": session.model_dump(mode="json", by_alias=True)},
    )
