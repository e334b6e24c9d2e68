"""
Core module exports.
"""
from .enums import (
    EventKind,
    HttpMethod,
    DeletedItemType,
    PendingOperation,
    Controller,
    TRANSPORT_FAILURE_STATUS,
)

from .exceptions import (
    BaseServiceError,
    PlatformServiceError,
    DinkassaServiceError,
    TransportError,
    LocalStoreError,
    DispatchError,
    EventValidationError,
)
