# /flowbot/main.py

import os
import time
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from flowbot.config.settings import settings
from flowbot.utils.lifecycle import lifespan
from flowbot.utils.metrics import response_time_histogram
from flowbot.utils.rate_limiter import limiter
from flowbot.routes import chat, config, public, sessions

# Initialize the FastAPI application
app = FastAPI(
    title="Chatbot Flow API",
    version="1.0.0",
    description="Configuration-driven chatbot flow engine with a WebSocket chat gateway",
    lifespan=lifespan,
    openapi_url=f"{settings.api_prefix}/openapi.json" if settings.environment != "production" else None,
    docs_url=f"{settings.api_prefix}/docs" if settings.environment != "production" else None,
    redoc_url=f"{settings.api_prefix}/redoc" if settings.environment != "production" else None,
)


# --- Rate Limiting ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Middleware ---
cors_origins = settings.cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials="*" not in cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(SlowAPIMiddleware)

@app.middleware("http")
async def performance_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    route = request.scope.get("route")
    endpoint = route.path if route is not None else "unmatched"
    response_time_histogram.labels(endpoint=endpoint).observe(process_time)
    response.headers["X-Process-Time"] = str(process_time)
    return response

# --- API Routers ---
app.include_router(public.router)
app.include_router(chat.router)
app.include_router(config.router, prefix=settings.api_prefix)
app.include_router(sessions.router, prefix=settings.api_prefix)

# --- Main Entry Point for Uvicorn (for local development) ---
if __name__ == "__main__":
    port = int(os.getenv("PORT", "3000"))
    host = os.getenv("HOST", "127.0.0.1")

    uvicorn.run(
        "flowbot.main:app",
        host=host,
        port=port,
        reload=True if settings.environment == "development" else False,
        workers=settings.workers if settings.environment == "production" else 1
    )
