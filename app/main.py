# Run from project root: uvicorn app.main:app --reload

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import get_dispatcher, router
from app.core.config import LOG_LEVEL
from app.core.errors import ServiceUnavailableError
from app.services.agent_service import warm_up

logging.basicConfig(level=LOG_LEVEL)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the retrieval index once; failures leave local mode on keyword matching
    try:
        await warm_up(get_dispatcher())
    except ServiceUnavailableError as e:
        logger.warning("Starting without a dispatcher: %s", e.message)
    yield


app = FastAPI(title="growGPT Query Dispatcher", lifespan=lifespan)
app.include_router(router)


@app.exception_handler(ServiceUnavailableError)
async def service_unavailable_handler(request: Request, exc: ServiceUnavailableError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": exc.message})
