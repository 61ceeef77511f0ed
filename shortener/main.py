from contextlib import asynccontextmanager
import logging
import random
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from .api.deps import Stores, get_stores, new_stores
from .api.errors import register_exception_handlers
from .api.v1 import links
from .config import settings
from .database import AsyncSessionLocal, engine
from .errors import NotFoundError
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .models import Visit
from .observability import PrometheusMiddleware, metrics_endpoint, REDIRECT_TOTAL, REDIRECT_404_TOTAL
from .utils import TokenGenerator

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    tokens = TokenGenerator(
        length=settings.TOKEN_LENGTH,
        max_attempts=settings.TOKEN_MAX_ATTEMPTS,
        rng=random.SystemRandom(),
    )
    app.state.stores = new_stores(AsyncSessionLocal, tokens=tokens)
    logger.info(f"Starting link shortener ({settings.ENVIRONMENT})")
    yield
    # Shutdown logic
    await engine.dispose()

setup_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Link Shortener",
    description="Short links with visit analytics",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware)
if settings.CORS_TRUSTED_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_TRUSTED_ORIGINS,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Expected-Version"],
    )

register_exception_handlers(app)

app.add_route("/metrics", metrics_endpoint)

app.include_router(links.router, prefix="/v1")

@app.get("/health")
async def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT, "version": app.version}

@app.get("/{token}")
async def redirect_to_destination(
    token: str,
    request: Request,
    stores: Stores = Depends(get_stores),
):
    try:
        link = await stores.links.get_by_token(token)
    except NotFoundError:
        REDIRECT_404_TOTAL.inc()
        raise

    await stores.visits.insert(
        Visit(
            link_id=link.id,
            referrer=request.headers.get("referer"),
            remote_address=request.client.host if request.client else None,
        )
    )

    REDIRECT_TOTAL.inc()
    return RedirectResponse(url=link.destination, status_code=302)
