"""FastAPI application main module.

This module defines the FastAPI application for the Geyser ranking service:
health, status and metrics endpoints, the recommendation router and the
mapping of Geyser errors to JSON error responses.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from geyser import __version__
from geyser.api.exceptions import error_body, status_code_for
from geyser.api.logging_config import RequestLoggingMiddleware
from geyser.api.metrics import metrics_service
from geyser.api.routes import recommend
from geyser.recommender.errors import GeyserError

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Geyser API",
    description="Wiki article recommendations from user votes",
    version=__version__,
)

app.add_middleware(RequestLoggingMiddleware)
app.include_router(recommend.router)


@app.exception_handler(GeyserError)
async def geyser_error_handler(request: Request, exc: GeyserError) -> JSONResponse:
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        exc.message,
        extra={
            "path": str(request.url.path),
            "status_code": status_code,
            "error_type": type(exc).__name__,
        },
    )
    return JSONResponse(status_code=status_code, content=error_body(exc))


@app.get("/ping")
def ping() -> Dict[str, str]:
    """Health check endpoint.

    Example:
        >>> response = client.get("/ping")
        >>> assert response.json() == {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/status")
def status() -> Dict[str, Any]:
    """Which models are loaded and their dimensions."""
    models = recommend.cache_status()
    return {"model_loaded": bool(models), "models": models}


@app.get("/metrics")
def metrics() -> Dict[str, Any]:
    """Ranking counts, latencies and the number of failed ranking requests.

    Example:
        >>> client.get("/metrics").json()["rankings"]["user"]["count"]
        3
    """
    return metrics_service.get_metrics()


if __name__ == "__main__":
    import uvicorn

    from geyser.api.logging_config import setup_logging

    setup_logging("INFO")
    uvicorn.run("geyser.api.main:app", host="0.0.0.0", port=8000)
