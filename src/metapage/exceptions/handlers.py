from __future__ import annotations

from typing import Any, Dict, Optional


class PageRuntimeException(Exception):
    """
    Base exception for the page runtime.

    Carries message/code/status_code/details/user_message so the HTTP layer
    can render it without knowing the concrete subclass.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "PAGE_RUNTIME_ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details: Dict[str, Any] = details or {}
        self.user_message = user_message or message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
        }

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class MetadataNotFoundError(PageRuntimeException):
    def __init__(self, kind: str, name: Any, **kwargs: Any):
        message = f"{kind} not found: {name}"
        details: Dict[str, Any] = {"kind": kind, "name": name}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="METADATA_NOT_FOUND",
            status_code=404,
            details=details,
            user_message=message,
        )


class RemoteCallError(PageRuntimeException):
    def __init__(self, operation: str, message: str, **kwargs: Any):
        details: Dict[str, Any] = {"operation": operation}
        details.update(kwargs)
        super().__init__(
            message=f"{operation} failed: {message}",
            code="REMOTE_CALL_FAILED",
            status_code=502,
            details=details,
            user_message=message,
        )


class ValidationError(PageRuntimeException):
    def __init__(self, message: str, field: Optional[str] = None, **kwargs: Any):
        details: Dict[str, Any] = {"field": field} if field else {}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=422,
            details=details,
            user_message=f"Validation failed: {message}",
        )


class ConfigurationError(PageRuntimeException):
    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs: Any):
        details: Dict[str, Any] = {"config_key": config_key} if config_key else {}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            status_code=500,
            details=details,
            user_message="System configuration error",
        )


class DebugSessionError(PageRuntimeException):
    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            code="DEBUG_SESSION_ERROR",
            status_code=409,
            details=dict(kwargs),
            user_message=message,
        )


class ResumeTokenError(PageRuntimeException):
    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            code="RESUME_TOKEN_INVALID",
            status_code=409,
            details=dict(kwargs),
            user_message=message,
        )
