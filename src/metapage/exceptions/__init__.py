from metapage.exceptions.handlers import (
    ConfigurationError,
    DebugSessionError,
    MetadataNotFoundError,
    PageRuntimeException,
    RemoteCallError,
    ResumeTokenError,
    ValidationError,
)

__all__ = [
    "PageRuntimeException",
    "MetadataNotFoundError",
    "RemoteCallError",
    "ValidationError",
    "ConfigurationError",
    "DebugSessionError",
    "ResumeTokenError",
]
