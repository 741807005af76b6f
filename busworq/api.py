import logging
from typing import TYPE_CHECKING, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .actions import get_registered_actions
from .schemas import ReceiverStatus

if TYPE_CHECKING:
    from .core import Worker

logger = logging.getLogger(__name__)

API_DESCRIPTION = """
Status API for a **busworq** worker.
Reports the health of the worker and each of its Service Bus receivers.
"""


def create_api(worker: "Worker") -> FastAPI:
    app = FastAPI(
        title="busworq",
        description=API_DESCRIPTION,
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url=None,
        openapi_url="/api/openapi.json",
    )

    @app.get("/api/health", tags=["Health"])
    async def health():
        statuses = worker.statuses()
        healthy = worker.is_running and all(s.connected for s in statuses)
        body = {
            "status": "ok" if healthy else "unavailable",
            "running": worker.is_running,
            "receivers": len(statuses),
        }
        return JSONResponse(body, status_code=200 if healthy else 503)

    @app.get("/api/receivers", response_model=List[ReceiverStatus], tags=["Receivers"])
    async def list_receivers():
        return worker.statuses()

    @app.get(
        "/api/receivers/{name}",
        response_model=ReceiverStatus,
        tags=["Receivers"],
    )
    async def get_receiver(name: str):
        for status in worker.statuses():
            if status.name == name:
                return status
        raise HTTPException(status_code=404, detail="Receiver not found")

    @app.get("/api/actions", tags=["Actions"])
    async def list_actions():
        return [action.model_dump() for action in get_registered_actions().values()]

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled API error: %s", str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app
