"""Visible tool set for a run mode, with keyword and category search."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from graph_relay.catalog.categories import TOOL_CATEGORIES
from graph_relay.catalog.models import EndpointDescriptor

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 50

_CONTROL_PARAM_SCHEMAS: dict[str, dict[str, Any]] = {
    "fetchAllPages": {
        "type": "boolean",
        "description": "Automatically fetch all pages of results",
    },
    "includeHeaders": {
        "type": "boolean",
        "description": "Include response headers (including ETag) in the response metadata",
    },
    "excludeResponse": {
        "type": "boolean",
        "description": "Exclude the full response body and only return success or failure",
    },
    "timezone": {
        "type": "string",
        "description": (
            'IANA timezone name (e.g. "Europe/London") for calendar event times. '
            "Times are returned in UTC when omitted."
        ),
    },
}


@dataclass(frozen=True)
class ToolMode:
    """Switches deciding which endpoints are visible."""

    read_only: bool = False
    org_mode: bool = False
    enabled_tools: str | None = None


def _compile_pattern(pattern: str | None) -> re.Pattern[str] | None:
    if not pattern:
        return None
    try:
        compiled = re.compile(pattern, re.IGNORECASE)
    except re.error:
        logger.error("[ToolRegistry] invalid tool filter pattern ignored; pattern:%s", pattern)
        return None
    logger.info("[ToolRegistry] tool filtering enabled; pattern:%s", pattern)
    return compiled


def tool_description(endpoint: EndpointDescriptor) -> str:
    method = endpoint.http_method
    description = endpoint.description or f"Execute {method} request to {endpoint.path}"
    if endpoint.llm_tip:
        description = f"{description}\n\nTIP: {endpoint.llm_tip}"
    return description


def input_schema(endpoint: EndpointDescriptor) -> dict[str, Any]:
    """JSON Schema of the parameters a caller may pass to an endpoint tool."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param in endpoint.parameters:
        schema = dict(param.schema) if param.schema else {}
        if param.description:
            schema.setdefault("description", param.description)
        properties[param.name] = schema
        if param.required:
            required.append(param.name)

    if endpoint.is_read_only and "/" in endpoint.path:
        properties["fetchAllPages"] = _CONTROL_PARAM_SCHEMAS["fetchAllPages"]
    properties["includeHeaders"] = _CONTROL_PARAM_SCHEMAS["includeHeaders"]
    properties["excludeResponse"] = _CONTROL_PARAM_SCHEMAS["excludeResponse"]
    if endpoint.supports_timezone:
        properties["timezone"] = _CONTROL_PARAM_SCHEMAS["timezone"]

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


class ToolRegistry:
    """Name-indexed endpoints visible under a ToolMode."""

    def __init__(self, endpoints: Iterable[EndpointDescriptor], mode: ToolMode) -> None:
        """Filter the catalog down to the tools exposed in this mode.

        Args:
            endpoints: Ordered endpoint catalog.
            mode: Visibility switches.
        """
        self.mode = mode
        pattern = _compile_pattern(mode.enabled_tools)
        self._tools: dict[str, EndpointDescriptor] = {}
        skipped = 0

        for endpoint in endpoints:
            if not mode.org_mode and endpoint.requires_org_mode:
                logger.debug("[ToolRegistry] skipping work account tool; tool:%s", endpoint.name)
                skipped += 1
                continue
            if mode.read_only and not endpoint.is_read_only:
                logger.debug(
                    "[ToolRegistry] skipping write tool in read-only mode; tool:%s", endpoint.name
                )
                skipped += 1
                continue
            if pattern is not None and not pattern.search(endpoint.name):
                logger.debug(
                    "[ToolRegistry] skipping tool not matching filter; tool:%s", endpoint.name
                )
                skipped += 1
                continue
            self._tools[endpoint.name] = endpoint

        logger.info(
            "[ToolRegistry] tool registry built; visible:%d;skipped:%d",
            len(self._tools),
            skipped,
        )

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[EndpointDescriptor]:
        return iter(self._tools.values())

    def get(self, name: str) -> EndpointDescriptor | None:
        return self._tools.get(name)

    def describe(self, endpoint: EndpointDescriptor) -> dict[str, Any]:
        return {
            "name": endpoint.name,
            "description": tool_description(endpoint),
            "method": endpoint.http_method,
            "path": endpoint.path,
            "readOnlyHint": endpoint.is_read_only,
            "inputSchema": input_schema(endpoint),
        }

    def list_tools(self) -> list[dict[str, Any]]:
        return [self.describe(endpoint) for endpoint in self._tools.values()]

    def search(
        self,
        query: str | None = None,
        category: str | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[dict[str, str]]:
        """Find visible tools by keyword and category.

        Args:
            query: Case-insensitive substring matched against name, path,
                description and tip.
            category: Key of TOOL_CATEGORIES; unknown categories do not filter.
            limit: Maximum number of results (capped at MAX_SEARCH_LIMIT).

        Returns:
            Ordered list of {name, method, path, description} entries.
        """
        max_results = min(limit, MAX_SEARCH_LIMIT)
        query_lower = query.lower() if query else None
        category_def = TOOL_CATEGORIES.get(category) if category else None

        results: list[dict[str, str]] = []
        for name, endpoint in self._tools.items():
            if len(results) >= max_results:
                break
            if category_def is not None and not category_def.pattern.search(name):
                continue
            if query_lower:
                haystack = (
                    f"{name} {endpoint.path} {endpoint.description} {endpoint.llm_tip or ''}"
                ).lower()
                if query_lower not in haystack:
                    continue
            results.append(
                {
                    "name": name,
                    "method": endpoint.http_method,
                    "path": endpoint.path,
                    "description": endpoint.description
                    or f"{endpoint.http_method} {endpoint.path}",
                }
            )
        return results
