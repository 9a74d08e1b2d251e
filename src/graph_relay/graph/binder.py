"""Binding of caller-supplied tool parameters onto an endpoint descriptor."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from graph_relay.catalog.models import (
    CONTROL_PARAMS,
    ODATA_QUERY_NAMES,
    EndpointDescriptor,
    ParameterDescriptor,
    ParameterKind,
)
from graph_relay.graph.models import RequestShape

logger = logging.getLogger(__name__)

TIMEZONE_HEADER = "Prefer"


def normalize_query_name(name: str) -> tuple[str, str, bool]:
    """Resolve OData system query names to their canonical "$" form.

    Args:
        name: Parameter name as supplied by the caller ("top", "$top", "Top").

    Returns:
        Tuple of (canonical_name, unprefixed_name, is_odata). Non-OData names
        are returned unchanged.
    """
    unprefixed = name[1:] if name.startswith("$") else name
    if unprefixed.lower() in ODATA_QUERY_NAMES:
        return f"${unprefixed.lower()}", unprefixed, True
    return name, unprefixed, False


def _find_descriptor(
    endpoint: EndpointDescriptor, name: str, unprefixed: str, is_odata: bool
) -> ParameterDescriptor | None:
    for param in endpoint.parameters:
        if param.name == name or (is_odata and param.name == unprefixed):
            return param
    return None


def _bind_body(param: ParameterDescriptor, value: Any) -> Any:
    """Return the body value, wrapping it as {name: value} when that is what validates."""
    if param.is_valid(value):
        return value
    wrapped = {param.name: value}
    if param.is_valid(wrapped):
        logger.info(
            "[bind_parameters] auto-corrected body parameter by wrapping it; param:%s",
            param.name,
        )
        return wrapped
    logger.info(
        "[bind_parameters] body parameter failed validation, forwarding as-is; param:%s",
        param.name,
    )
    return value


def _serialize_body(body: Any) -> str:
    if isinstance(body, str):
        return body
    return json.dumps(body)


def bind_parameters(endpoint: EndpointDescriptor, params: Mapping[str, Any]) -> RequestShape:
    """Build the concrete request for one invocation of an endpoint.

    Control parameters (fetchAllPages, includeHeaders, excludeResponse,
    timezone) are consumed here and never forwarded. Unknown parameters are
    dropped; values Graph would reject are forwarded so that Graph reports
    the error. This function never raises for caller input.

    Args:
        endpoint: Descriptor of the target endpoint.
        params: Mapping of parameter name to caller-supplied value.

    Returns:
        RequestShape ready for execution.
    """
    path = endpoint.path
    query: dict[str, str] = {}
    headers: dict[str, str] = {}
    body: Any = None

    for name, value in params.items():
        if name in CONTROL_PARAMS:
            continue

        canonical, unprefixed, is_odata = normalize_query_name(name)
        param = _find_descriptor(endpoint, name, unprefixed, is_odata)

        if param is None:
            if name == "body":
                body = value
            else:
                logger.debug(
                    "[bind_parameters] dropping unknown parameter; tool:%s;param:%s",
                    endpoint.name,
                    name,
                )
            continue

        match param.kind:
            case ParameterKind.PATH:
                encoded = quote(str(value), safe="")
                path = path.replace(f"{{{param.name}}}", encoded).replace(
                    f":{param.name}", encoded
                )
            case ParameterKind.QUERY:
                query[canonical] = _stringify(value)
            case ParameterKind.HEADER:
                headers[canonical] = _stringify(value)
            case ParameterKind.BODY:
                body = _bind_body(param, value)

    timezone = params.get("timezone")
    if endpoint.supports_timezone and timezone:
        headers[TIMEZONE_HEADER] = f'outlook.timezone="{timezone}"'
        logger.info("[bind_parameters] setting timezone preference; timezone:%s", timezone)

    method = endpoint.http_method
    serialized: str | None = None
    if method != "GET" and body is not None and body != "":
        serialized = _serialize_body(body)

    return RequestShape(method=method, path=path, query=query, headers=headers, body=serialized)


def _stringify(value: Any) -> str:
    """Render a value the way it appears in a URL or header.

    Lists are comma-joined ("id,subject"), mappings are sent as JSON and
    None becomes an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value)
    return str(value)
