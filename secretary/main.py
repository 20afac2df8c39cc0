from __future__ import annotations

import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from secretary.api import auth, calendar, fireflies, health, meetings, webhook
from secretary.api.deps import client_ip
from secretary.config import settings
from secretary.db import init_db
from secretary.errors import install_error_handlers
from secretary.ratelimit import AuthRateLimitMiddleware, FixedWindowLimiter

os.makedirs(settings.log_dir, exist_ok=True)
logger.add(os.path.join(settings.log_dir, "app.log"), rotation="10 MB", retention=5)

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

ALLOWED_ORIGIN_REGEX = r"https?://(localhost|127\.0\.0\.1)(:\d+)?|https://.*\.(vercel\.app|onrender\.com)"

app = FastAPI(title=settings.project_name, version="0.1.0")
install_error_handlers(app)

auth_limiter = FixedWindowLimiter(
    max_attempts=settings.rate_limit_max_attempts,
    window_sec=settings.rate_limit_window_sec,
    max_keys=settings.rate_limit_max_keys,
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


app.middleware("http")(AuthRateLimitMiddleware(auth_limiter, key_func=client_ip))


@app.middleware("http")
async def request_log(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    if not settings.is_production or request.url.path.startswith("/api"):
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.bind(tag="http.request").info(
            f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms"
        )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=ALLOWED_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(auth.router, prefix="/api/auth")
app.include_router(meetings.router, prefix="/api/meetings")
app.include_router(calendar.router, prefix="/api/calendar")
app.include_router(fireflies.router, prefix="/api/fireflies")
app.include_router(webhook.router, prefix="/api/webhook")
app.include_router(health.router, prefix="/api/health")


@app.on_event("startup")
def startup() -> None:
    logger.bind(tag="startup.init").info("initializing database", environment=settings.environment)
    init_db()


@app.get("/health")
def health_alias() -> dict:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=int(os.getenv("PORT", "3001")),
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1"),
    )
