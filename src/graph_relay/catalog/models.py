"""Declarative descriptors for Graph endpoints exposed as tools."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from jsonschema import Draft202012Validator

# OData system query options; callers may omit the "$" prefix
ODATA_QUERY_NAMES = frozenset(
    {"filter", "select", "expand", "orderby", "skip", "top", "count", "search", "format"}
)

# Per-call switches consumed by the dispatcher, never sent to Graph
CONTROL_PARAMS = frozenset({"fetchAllPages", "includeHeaders", "excludeResponse", "timezone"})


class ParameterKind(enum.Enum):
    """Where a parameter value is placed in the outgoing request."""

    PATH = "Path"
    QUERY = "Query"
    HEADER = "Header"
    BODY = "Body"


@dataclass(frozen=True)
class ParameterDescriptor:
    """One named parameter of an endpoint.

    Attributes:
        name: Parameter name as exposed to callers (OData names without "$").
        kind: Placement of the value in the request.
        schema: Optional JSON Schema used to structurally check Body values.
        description: Human-readable hint for tool listings.
        required: Whether the catalog marks the parameter as required.
    """

    name: str
    kind: ParameterKind
    schema: dict[str, Any] | None = None
    description: str = ""
    required: bool = False
    validator: Draft202012Validator | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        if self.schema is not None:
            object.__setattr__(self, "validator", Draft202012Validator(self.schema))

    def is_valid(self, value: Any) -> bool:
        """Return True when the value passes the structural validator (or there is none)."""
        if self.validator is None:
            return True
        return bool(self.validator.is_valid(value))


@dataclass(frozen=True)
class EndpointDescriptor:
    """Static definition of one Graph operation."""

    name: str
    method: str
    path: str
    parameters: tuple[ParameterDescriptor, ...] = ()
    description: str = ""
    scopes: tuple[str, ...] = ()
    work_scopes: tuple[str, ...] = ()
    return_download_url: bool = False
    supports_timezone: bool = False
    media_content: bool = False
    llm_tip: str | None = None

    @property
    def http_method(self) -> str:
        return self.method.upper()

    @property
    def is_read_only(self) -> bool:
        return self.http_method == "GET"

    @property
    def requires_org_mode(self) -> bool:
        """True for operations only available to work/school accounts."""
        return bool(self.work_scopes) and not self.scopes

    def find_parameter(self, name: str) -> ParameterDescriptor | None:
        for param in self.parameters:
            if param.name == name:
                return param
        return None
