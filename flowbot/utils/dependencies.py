# /flowbot/utils/dependencies.py

import secrets
from fastapi import Request, HTTPException

from flowbot.config.settings import settings


async def verify_metrics_access(request: Request):
    if settings.api_key:
        provided_key = request.headers.get("X-API-KEY")
        if not (provided_key and secrets.compare_digest(provided_key, settings.api_key)):
            raise HTTPException(status_code=403, detail="Invalid or missing API key")
