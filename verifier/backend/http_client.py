"""HTTP client for the remote access service endpoints."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..config import Settings
from ..errors import AuthError, NetworkError, ValidationError, VerifierError
from ..models import Checkpoint, UnlockGrant, UnlockResponse, ValidateResponse, VerificationResult

logger = logging.getLogger(__name__)

_DEFAULT_MESSAGES: Dict[str, str] = {
    "unlock": "Failed to unlock verifier.",
    "validate": "Request failed",
    "checkpoints": "Failed to load checkpoints",
}


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and isinstance(body.get("error"), str) and body["error"]:
        return body["error"]
    return default


def _status_error(op: str, response: httpx.Response) -> VerifierError:
    message = _error_message(response, _DEFAULT_MESSAGES.get(op, "Request failed"))
    log_message = f"{op}: HTTP {response.status_code} - {message}"
    status = response.status_code
    if status in (401, 403):
        return AuthError(message, log_message=log_message)
    if 400 <= status < 500:
        return ValidationError(message, log_message=log_message)
    return NetworkError(message, log_message=log_message)


class RemoteAccessBackend:
    """Thin wrapper around the access service REST API."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            timeout=self.settings.http.timeout_seconds,
        )

    async def unlock(self, pin: str, device_id: str) -> UnlockGrant:
        """Exchange a staff PIN for a short-lived verifier session token."""
        headers: Dict[str, str] = {}
        if self.settings.staff_id_token:
            headers["Authorization"] = f"Bearer {self.settings.staff_id_token}"
        logger.info("access.unlock: requesting verifier session for device %s", device_id)
        data = await self._request(
            "unlock",
            "POST",
            self.settings.http.unlock_path,
            json={"pin": pin, "deviceId": device_id},
            headers=headers,
        )
        try:
            parsed = UnlockResponse.model_validate(data)
        except PydanticValidationError as exc:
            logger.error("access.unlock: response missing session token %s", exc)
            raise AuthError(_DEFAULT_MESSAGES["unlock"]) from exc
        return UnlockGrant(token=parsed.session_token, expires_at=parsed.expires_at)

    async def checkpoints_by_org(self, org_id: str, session_token: Optional[str] = None) -> List[Checkpoint]:
        data = await self._request(
            "checkpoints",
            "GET",
            self.settings.http.checkpoints_path,
            params={"orgId": org_id},
            headers=self._session_headers(session_token),
        )
        items = data.get("checkpoints") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise NetworkError("Unexpected response from server", log_message=f"checkpoints: bad body {data!r}")
        checkpoints: List[Checkpoint] = []
        for item in items:
            try:
                checkpoints.append(Checkpoint.model_validate(item))
            except PydanticValidationError:
                logger.warning("access.checkpoints: skipping malformed checkpoint %r", item)
        return checkpoints

    async def validate(self, code: str, checkpoint_id: str, session_token: str) -> VerificationResult:
        data = await self._request(
            "validate",
            "POST",
            self.settings.http.validate_path,
            json={"code": code, "checkpointId": checkpoint_id},
            headers=self._session_headers(session_token),
        )
        if not isinstance(data, dict):
            raise NetworkError("Unexpected response from server", log_message=f"validate: bad body {data!r}")
        return ValidateResponse.model_validate(data).to_result()

    async def aclose(self) -> None:
        if not self._owns_client:
            return
        try:
            await self._client.aclose()
        except Exception as e:
            logger.warning("Error closing HTTP client: %s", e)

    def _session_headers(self, session_token: Optional[str]) -> Dict[str, str]:
        if not session_token:
            return {}
        return {self.settings.http.session_header: session_token}

    async def _request(self, op: str, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.error("access.%s: request timeout", op)
            raise NetworkError("Request timed out. Please try again.") from exc
        except httpx.HTTPStatusError as exc:
            error = _status_error(op, exc.response)
            logger.error("access.%s", error)
            raise error from exc
        except httpx.TransportError as exc:
            logger.error("access.%s: network error - %s", op, exc)
            raise NetworkError("Network error. Please try again.") from exc
        try:
            return response.json()
        except ValueError as exc:
            logger.error("access.%s: response is not JSON", op)
            raise NetworkError("Unexpected response from server") from exc


__all__ = ["RemoteAccessBackend"]
