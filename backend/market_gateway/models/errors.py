"""Error taxonomy shared by clients, services and the HTTP layer."""

from __future__ import annotations

from typing import Any, Optional


class GatewayError(RuntimeError):
    status_code: int = 500

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        payload: dict = {"message": self.message}
        if self.details is not None:
            payload["error"] = self.details
        return payload


class ConfigurationError(GatewayError):
    """Missing credentials / keys. Raised before any network call."""

    status_code = 500


class UpstreamError(GatewayError):
    """Broker or AI API failed: transport error, non-2xx, or malformed payload."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Any] = None,
        upstream_status: Optional[int] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.upstream_status = upstream_status

    def rewrap(self, message: str) -> "UpstreamError":
        return UpstreamError(message, details=self.details, upstream_status=self.upstream_status)


class ValidationError(GatewayError):
    status_code = 400


class AuthRequiredError(GatewayError):
    status_code = 401
