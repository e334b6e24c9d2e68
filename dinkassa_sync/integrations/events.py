"""
Purpose: Defines the data structure for catalog events that are propagated to Dinkassa.se.
Contents:
EventDescriptor (Pydantic Model): One outbound sync request. Carries what the dispatcher needs to call
Dinkassa.se (method, controller, optional Dinkassa id, payload, extra headers, whether the trigger was
secure) and what reconciliation needs afterwards (event kind, local entity id).
Immutable once built; it is consumed by exactly one dispatch attempt.
"""

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from dinkassa_sync.core.enums import EventKind, HttpMethod
from dinkassa_sync.core.exceptions import EventValidationError

DELETE_KINDS = (EventKind.PRODUCT_DELETED, EventKind.CATEGORY_DELETED)


class EventDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: EventKind
    local_id: int = Field(ge=0)
    remote_id: Optional[str] = None
    method: HttpMethod
    resource_path: str = Field(min_length=1)
    body: Optional[str] = None              # URL-encoded, decoded by the client
    extra_headers: Optional[Dict[str, str]] = None
    log_context: Optional[Any] = None       # replaces the response in the audit log
    secure: bool = False                    # inbound trigger arrived over https

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("remote_id", mode="before")
    @classmethod
    def _blank_remote_id(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("resource_path")
    @classmethod
    def _strip_path(cls, value: str) -> str:
        value = value.strip().strip("/")
        if not value:
            raise ValueError("resource_path must not be empty")
        return value

    @model_validator(mode="after")
    def _delete_needs_remote_id(self):
        if self.kind in DELETE_KINDS and not self.remote_id:
            raise ValueError(f"{self.kind.value} requires the Dinkassa id of the deleted item")
        return self

    @classmethod
    def from_form(cls, form: Mapping[str, Any], secure: bool = False) -> "EventDescriptor":
        """
        Build a descriptor from the form-encoded trigger payload.

        Expected fields: event, controller, request, post_id and optionally
        dinkassa_id, data, opt_headers, info.
        """
        try:
            return cls(
                kind=form.get("event"),
                local_id=form.get("post_id"),
                remote_id=form.get("dinkassa_id"),
                method=form.get("request"),
                resource_path=form.get("controller") or "",
                body=form.get("data"),
                extra_headers=parse_header_lines(form.get("opt_headers")),
                log_context=form.get("info"),
                secure=secure,
            )
        except ValidationError as e:
            raise EventValidationError(f"Invalid event payload: {e}") from e


def parse_header_lines(headers: Union[None, Mapping[str, str], List[str]]) -> Optional[Dict[str, str]]:
    """Accepts either a mapping or a list of 'Name: value' lines"""
    if not headers:
        return None
    if isinstance(headers, Mapping):
        return {str(name): str(value) for name, value in headers.items()}
    parsed = {}
    for line in headers:
        name, sep, value = str(line).partition(":")
        if not sep or not name.strip():
            raise EventValidationError(f"Malformed header line: {line!r}")
        parsed[name.strip()] = value.strip()
    return parsed
