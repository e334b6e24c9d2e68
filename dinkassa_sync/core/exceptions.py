class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class PlatformServiceError(BaseServiceError):
    """Base exception for remote platform errors."""
    pass

class DinkassaServiceError(PlatformServiceError):
    """Base exception for Dinkassa.se-specific errors."""
    pass

class TransportError(DinkassaServiceError):
    """Raised when an HTTP call to Dinkassa.se could not be initiated or completed."""
    pass

class LocalStoreError(BaseServiceError):
    """Raised when reading or writing local entity metadata fails."""
    pass

class DispatchError(BaseServiceError):
    """Raised when an event cannot be queued for dispatch."""
    pass

class EventValidationError(BaseServiceError):
    """Raised when an inbound event payload fails validation."""
    pass
