"""
Error taxonomy for the assistant.

Only CatalogLoadError and ConfigurationError are allowed to stop the process,
and only at startup. Everything raised while serving a request is caught at
the orchestrator or route boundary.
"""

from typing import Optional


class AtlasAssistantError(Exception):
    """Base class for all assistant errors"""


class CatalogLoadError(AtlasAssistantError):
    """Catalog source is unreadable or malformed"""


class ConfigurationError(AtlasAssistantError):
    """Required configuration is missing or invalid"""


class ChatValidationError(AtlasAssistantError):
    """Client supplied an unusable chat request"""


class ServiceInvocationError(AtlasAssistantError):
    """Completion service call failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CompletionTransportError(ServiceInvocationError):
    """Network level failure, timeout or non-success HTTP status"""

    @property
    def is_certificate_error(self) -> bool:
        text = str(self).lower()
        return "certificate" in text or "ssl" in text or "issuer" in text


class CompletionProviderError(ServiceInvocationError):
    """Provider answered with an error object in the body"""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code)
        self.code = code


class MalformedCompletionError(ServiceInvocationError):
    """Response body is missing choices or message"""
