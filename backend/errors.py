"""Error taxonomy shared by the pipeline, retrieval and API layers."""
from typing import Any, Dict, Optional


class ConfigurationError(ValueError):
    """Invalid chunking/embedding configuration, strategy or retrieval parameter."""


class ProviderError(RuntimeError):
    """An embedding or completion provider call failed."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class EmbeddingProviderError(ProviderError):
    """The embedding provider rejected a request or could not be reached."""


class NotFoundError(LookupError):
    """A book, embedding configuration or chunk set does not exist."""


class PipelineStateError(RuntimeError):
    """An indexing pipeline transition was attempted out of order."""
