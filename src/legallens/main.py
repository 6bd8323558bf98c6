import logging
from typing import Any, Callable, TypeVar

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from legallens.api.documents import router as documents_router
from legallens.dependencies import get_settings
from legallens.llm_provider import get_model_client
from legallens.logging_config import configure_logging
from legallens.telemetry import emit_app_startup_event

configure_logging()

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="LegalLens API")
app.include_router(documents_router)


T = TypeVar("T")


def _resolve_dependency(factory: Callable[[], T]) -> T:
    """Resolve a dependency while respecting FastAPI overrides."""

    override: Any | None = app.dependency_overrides.get(factory)
    resolved: Any = override if override is not None else factory
    return resolved() if callable(resolved) else resolved


@app.on_event("startup")
async def _startup() -> None:
    settings = _resolve_dependency(get_settings)
    emit_app_startup_event(key_pool_size=len(settings.api_keys))
    if not settings.api_keys:
        LOGGER.warning("Starting without API keys; analysis and chat requests will fail.")


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Report whether the model client has at least one API key."""
    status = _resolve_dependency(get_model_client).status()
    if not status.ready:
        raise HTTPException(status_code=503, detail=status.error or "Model client is not ready")
    return "ok"


@app.get("/healthz/model")
def model_healthcheck() -> dict[str, object]:
    """Expose the configured model and the state of its key pool."""

    status = _resolve_dependency(get_model_client).status()
    payload: dict[str, object] = {
        "ready": status.ready,
        "name": status.model_name,
        "key_pool_size": status.key_pool_size,
        "cursor": status.cursor,
    }
    if status.error:
        payload["reason"] = status.error
    return payload
