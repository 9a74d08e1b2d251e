"""Endpoint catalog loading from a JSON document."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from graph_relay.catalog.models import EndpointDescriptor, ParameterDescriptor, ParameterKind

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).with_name("endpoints.json")


class CatalogError(Exception):
    """Raised when the endpoint catalog cannot be parsed."""


def _parse_parameter(raw: dict[str, Any], tool_name: str) -> ParameterDescriptor:
    try:
        kind = ParameterKind(raw["type"])
    except (KeyError, ValueError) as exc:
        raise CatalogError(
            f"Invalid parameter type {raw.get('type')!r} in tool {tool_name}"
        ) from exc
    return ParameterDescriptor(
        name=raw["name"],
        kind=kind,
        schema=raw.get("schema"),
        description=raw.get("description", ""),
        required=bool(raw.get("required", False)),
    )


def parse_endpoint(raw: dict[str, Any]) -> EndpointDescriptor:
    """Map one catalog record to an EndpointDescriptor.

    Args:
        raw: Catalog record with at least toolName, method and pathPattern.

    Returns:
        Immutable EndpointDescriptor.

    Raises:
        CatalogError: If a required field is missing or a parameter type is unknown.
    """
    try:
        name = raw["toolName"]
        method = raw["method"]
        path = raw["pathPattern"]
    except KeyError as exc:
        raise CatalogError(f"Catalog record missing field {exc.args[0]!r}: {raw!r}") from exc

    return EndpointDescriptor(
        name=name,
        method=method.upper(),
        path=path,
        parameters=tuple(_parse_parameter(p, name) for p in raw.get("parameters", [])),
        description=raw.get("description", ""),
        scopes=tuple(raw.get("scopes") or ()),
        work_scopes=tuple(raw.get("workScopes") or ()),
        return_download_url=bool(raw.get("returnDownloadUrl", False)),
        supports_timezone=bool(raw.get("supportsTimezone", False)),
        media_content=bool(raw.get("mediaContent", False)),
        llm_tip=raw.get("llmTip"),
    )


def load_catalog(path: str | Path | None = None) -> list[EndpointDescriptor]:
    """Load the ordered endpoint catalog.

    Duplicate tool names keep the first occurrence.

    Args:
        path: JSON file holding a list of catalog records. Defaults to the
            catalog shipped with the package.

    Returns:
        Ordered list of EndpointDescriptor objects.
    """
    catalog_path = Path(path) if path is not None else DEFAULT_CATALOG_PATH
    with catalog_path.open(encoding="utf-8") as fh:
        records = json.load(fh)
    if not isinstance(records, list):
        raise CatalogError(f"Catalog {catalog_path} must contain a JSON list")

    endpoints: list[EndpointDescriptor] = []
    seen: set[str] = set()
    for raw in records:
        endpoint = parse_endpoint(raw)
        if endpoint.name in seen:
            logger.warning("[load_catalog] duplicate tool name ignored; name:%s", endpoint.name)
            continue
        seen.add(endpoint.name)
        endpoints.append(endpoint)

    logger.info(
        "[load_catalog] loaded endpoint catalog; path:%s;endpoint_count:%d",
        catalog_path,
        len(endpoints),
    )
    return endpoints
