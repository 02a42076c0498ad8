"""FastAPI entry-point for the verifier terminal."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import psutil
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .backend import AccessBackend
from .config import Settings, get_settings
from .device import DeviceIdentity
from .errors import AuthError, NetworkError, SessionBusyError, ValidationError, VerifierError
from .logging_config import configure_logging
from .terminal import VerifierTerminal

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthError: status.HTTP_401_UNAUTHORIZED,
    SessionBusyError: status.HTTP_409_CONFLICT,
    NetworkError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class UnlockRequest(BaseModel):
    pin: str = ""


class SelectCheckpointRequest(BaseModel):
    checkpoint_id: str = Field("", alias="checkpointId")


class VerifyRequest(BaseModel):
    code: str = ""
    checkpoint_id: Optional[str] = Field(None, alias="checkpointId")


def _status_for(exc: VerifierError) -> int:
    for error_type, code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(
    settings: Optional[Settings] = None,
    *,
    backend: Optional[AccessBackend] = None,
    device: Optional[DeviceIdentity] = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="verifier-terminal", version="0.1.0")
    terminal = VerifierTerminal(settings=settings, backend=backend, device=device)
    app.state.terminal = terminal

    @app.exception_handler(VerifierError)
    async def verifier_exception_handler(request: Request, exc: VerifierError) -> JSONResponse:
        logger.warning("%s in %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error": exc.user_message, "retryable": exc.retryable},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle request validation errors gracefully."""
        logger.warning("Validation error in %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": "Invalid request", "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler to prevent application crashes."""
        logger.exception("Unhandled exception in %s: %s", request.url.path, exc)
        return JSONResponse(
            {"error": "Internal server error", "retryable": False},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials="*" not in settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "Verifier terminal started (mode=%s, device=%s)",
            settings.data_mode,
            terminal.device_id,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        try:
            await terminal.close()
            logger.info("Verifier terminal shutdown complete")
        except Exception as e:
            logger.exception("Error during shutdown: %s", e)

    @app.get("/healthz")
    async def healthcheck() -> JSONResponse:
        return JSONResponse({"status": "ok", "session": terminal.session.status.value, "mode": settings.data_mode})

    @app.get("/debug/performance")
    async def debug_performance() -> JSONResponse:
        """Get real-time CPU and memory usage."""
        try:
            cpu_percent = psutil.cpu_percent(interval=0.1)
            memory = psutil.virtual_memory()
            return JSONResponse({
                "cpu_percent": round(cpu_percent, 1),
                "memory_percent": round(memory.percent, 1),
                "memory_used_mb": round(memory.used / (1024 * 1024), 1),
                "memory_total_mb": round(memory.total / (1024 * 1024), 1),
            })
        except Exception as e:
            logger.error("Performance monitoring error: %s", e)
            return JSONResponse({"error": str(e)}, status_code=500)

    @app.get("/session")
    async def get_session() -> JSONResponse:
        return JSONResponse(terminal.snapshot())

    @app.post("/session/unlock")
    async def unlock(payload: UnlockRequest) -> JSONResponse:
        grant = await terminal.unlock(payload.pin)
        return JSONResponse({"status": terminal.session.status.value, "expiresAt": grant.expires_at.isoformat()})

    @app.post("/session/lock")
    async def lock() -> JSONResponse:
        await terminal.lock()
        return JSONResponse({"status": terminal.session.status.value})

    @app.get("/checkpoints")
    async def list_checkpoints() -> JSONResponse:
        return JSONResponse({
            "checkpoints": [c.to_dict() for c in terminal.directory.checkpoints],
            "selected": terminal.directory.selected,
        })

    @app.post("/checkpoints/refresh")
    async def refresh_checkpoints() -> JSONResponse:
        if not terminal.session.is_unlocked():
            raise AuthError("Verifier is locked.")
        options = await terminal.refresh_checkpoints()
        return JSONResponse({
            "checkpoints": [c.to_dict() for c in options],
            "selected": terminal.directory.selected,
        })

    @app.post("/checkpoints/select")
    async def select_checkpoint(payload: SelectCheckpointRequest) -> JSONResponse:
        selected = terminal.select_checkpoint(payload.checkpoint_id)
        return JSONResponse({"selected": selected})

    @app.post("/verify")
    async def verify(payload: VerifyRequest) -> JSONResponse:
        outcome = await terminal.submit_code(payload.code, payload.checkpoint_id)
        return JSONResponse(outcome.to_dict())

    @app.websocket("/ws/ui")
    async def ui_socket(ws: WebSocket) -> None:
        await ws.accept()
        queue = terminal.presenter.register_ui()
        try:
            while True:
                try:
                    event = await queue.get()
                except asyncio.CancelledError:
                    break

                payload = {
                    "type": event.type,
                    "status": event.status.value,
                    "data": event.data,
                }
                if event.error:
                    payload["error"] = event.error

                try:
                    await ws.send_json(payload)
                except Exception as e:
                    logger.debug("WebSocket send failed (client disconnected): %s", e)
                    break
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error("Unexpected error in UI websocket: %s", e)
        finally:
            terminal.presenter.unregister_ui(queue)
            try:
                await ws.close()
            except Exception:
                pass

    return app


def build_default_app() -> FastAPI:
    """Factory for ``uvicorn --factory verifier.main:build_default_app``."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_directory, settings.log_retention_days)
    return create_app(settings)
