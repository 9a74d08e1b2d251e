"""Shaping of Graph responses into the tool result envelope."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import yaml

from graph_relay.graph.models import ODATA_PREFIX, GraphResponse

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("json", "yaml")

# Response headers copied into the result metadata when includeHeaders is set
CAPTURED_HEADERS = (
    "ETag",
    "Location",
    "Content-Location",
    "Preference-Applied",
    "Retry-After",
    "request-id",
    "client-request-id",
)
NO_ETAG = "no-etag-found"


@dataclass
class ToolResult:
    """Envelope returned to the host for every tool invocation."""

    content: list[dict[str, str]] = field(default_factory=list)
    is_error: bool = False
    meta: dict[str, Any] | None = None

    @classmethod
    def from_text(cls, text: str, meta: dict[str, Any] | None = None) -> ToolResult:
        return cls(content=[{"type": "text", "text": text}], meta=meta)

    @classmethod
    def error(cls, message: str, **extra: Any) -> ToolResult:
        payload = {"error": message, **extra}
        return cls(content=[{"type": "text", "text": json.dumps(payload)}], is_error=True)

    @property
    def text(self) -> str:
        return self.content[0]["text"] if self.content else ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"content": [dict(item) for item in self.content]}
        if self.is_error:
            data["isError"] = True
        if self.meta:
            data["_meta"] = self.meta
        return data


def decode_body(response: GraphResponse) -> Any:
    """Decode a response body, tolerating empty and non-JSON payloads."""
    text = response.text
    if text == "":
        return {"message": "OK!"}
    try:
        return json.loads(text)
    except ValueError:
        return {"message": "OK!", "rawResponse": text}


def strip_odata(value: Any) -> Any:
    """Return a copy of value without "@odata." keys at any nesting level."""
    if isinstance(value, dict):
        return {
            key: strip_odata(item)
            for key, item in value.items()
            if not key.startswith(ODATA_PREFIX)
        }
    if isinstance(value, list):
        return [strip_odata(item) for item in value]
    return value


def capture_headers(response: GraphResponse) -> dict[str, Any]:
    """Select the headers exposed to callers through result metadata."""
    headers: dict[str, str] = {}
    for name in CAPTURED_HEADERS:
        value = response.header(name)
        if value is not None:
            headers[name] = value
    return {"etag": response.header("ETag") or NO_ETAG, "headers": headers}


def serialize(data: Any, output_format: str = "json", pretty: bool = False) -> str:
    """Serialize data as JSON or YAML.

    YAML encoding failures fall back to JSON rather than failing the call.
    """
    if output_format == "yaml":
        try:
            return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        except yaml.YAMLError as exc:
            logger.warning("[serialize] YAML encoding failed, falling back to JSON; error:%s", exc)
    return json.dumps(data, indent=2 if pretty else None, ensure_ascii=False)


def _as_object(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {"value": value}


def format_response(
    data: Any,
    *,
    raw: bool = False,
    exclude_response: bool = False,
    output_format: str = "json",
    meta: dict[str, Any] | None = None,
) -> ToolResult:
    """Build the tool result for a decoded Graph response.

    Precedence: exclude_response returns only a success marker; raw returns
    the payload untouched; otherwise OData metadata keys are stripped and
    the payload is pretty-printed.

    Args:
        data: Decoded response body.
        raw: Skip metadata stripping (media and binary endpoints).
        exclude_response: Discard the body and report success only.
        output_format: "json" or "yaml".
        meta: Optional side-channel metadata (captured headers).

    Returns:
        ToolResult with a single text content item.
    """
    if exclude_response:
        return ToolResult.from_text(serialize({"success": True}, output_format), meta=meta)

    if data is None:
        return ToolResult.from_text(serialize({"success": True}, output_format), meta=meta)

    if raw:
        return ToolResult.from_text(serialize(_as_object(data), output_format), meta=meta)

    structured = strip_odata(_as_object(data))
    return ToolResult.from_text(serialize(structured, output_format, pretty=True), meta=meta)
