import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from formbuilder.api.v1.router import api_v1_router
from formbuilder.core.config import settings
from formbuilder.core.database import dispose_engine
from formbuilder.core.logging_config import configure_logging
from formbuilder.core.rate_limit import FixedWindowRateLimiter
from formbuilder.core.security import SECURITY_HEADERS, SecurityMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("%s starting (debug=%s)", settings.PROJECT_NAME, settings.DEBUG)

    yield

    logger.info("Shutting down...")
    dispose_engine()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    lifespan=lifespan,
)

# Process-local limiters; each worker enforces its own budget
app.state.api_rate_limiter = FixedWindowRateLimiter(
    settings.API_RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS
)
app.state.submission_rate_limiter = FixedWindowRateLimiter(
    settings.SUBMISSION_RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS
)

app.add_middleware(SecurityMiddleware, rate_limiter=app.state.api_rate_limiter)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = [error.get("msg", "Invalid value") for error in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": ", ".join(messages) or "Invalid request"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500, content={"detail": "Internal server error"}, headers=SECURITY_HEADERS
    )


app.include_router(api_v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/health")
def health_check():
    return {"status": "healthy"}
