"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request

from notifyhub.runtime import Pipeline


def get_pipeline(request: Request) -> Pipeline:
    """The pipeline built in the app lifespan (or injected by tests)."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Dispatch pipeline not running")
    return pipeline
