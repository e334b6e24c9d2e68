# dinkassa_sync/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from dinkassa_sync.core.logging_config import configure_logging
from dinkassa_sync.database import dispose_engine
from dinkassa_sync.integrations.setup import setup_dispatcher
from dinkassa_sync.routes import events, health

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: start the dispatcher workers
    app.state.dispatcher = await setup_dispatcher()
    try:
        yield  # This is where the app runs
    finally:
        await app.state.dispatcher.stop()
        await dispose_engine()

app = FastAPI(
    title="Dinkassa Sync Worker",
    lifespan=lifespan
)

# Add middleware to handle HTTPS behind proxy
@app.middleware("http")
async def proxy_headers_middleware(request: Request, call_next):
    # The storefront proxy sets X-Forwarded-Proto when the client connected over TLS
    forwarded_proto = request.headers.get("x-forwarded-proto")
    if forwarded_proto == "https":
        request.scope["scheme"] = "https"
    response = await call_next(request)
    return response

app.include_router(health.router)
app.include_router(events.router)
