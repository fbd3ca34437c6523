"""
Shared FastAPI dependencies.
"""

from fastapi import HTTPException, Request

from pipeline.config import LOAD_ERROR_MESSAGE
from pipeline.controller import HeritageMapController


def get_controller(request: Request) -> HeritageMapController:
    """The map controller created by the application lifespan."""
    return request.app.state.controller


def load_error(detail: str | None = None) -> HTTPException:
    """503 telling the client the data source failed and how to retry."""
    return HTTPException(
        status_code=503,
        detail={
            "message": detail or LOAD_ERROR_MESSAGE,
            "retry": "POST /api/sites/reload",
        },
    )


def require_loaded(controller: HeritageMapController) -> None:
    """Raise the load error while the controller is in its error state."""
    if controller.context.error:
        raise load_error(controller.context.error)
