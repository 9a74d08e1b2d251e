"""Dispatch of tool invocations to Graph endpoints and convenience operations."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from graph_relay.catalog.categories import TOOL_CATEGORIES
from graph_relay.catalog.loader import load_catalog
from graph_relay.catalog.models import EndpointDescriptor
from graph_relay.drive.tree import DEFAULT_MAX_DEPTH, STRUCTURES, DriveTreeCollector, TreeOptions
from graph_relay.graph.binder import bind_parameters
from graph_relay.graph.client import GraphClient, graph_client_from_config
from graph_relay.graph.normalizer import (
    ToolResult,
    capture_headers,
    decode_body,
    format_response,
    serialize,
)
from graph_relay.graph.pagination import fetch_all_pages
from graph_relay.tools.download import download_to_local
from graph_relay.tools.registry import DEFAULT_SEARCH_LIMIT, ToolMode, ToolRegistry

if TYPE_CHECKING:
    from graph_relay.config import AppConfig

logger = logging.getLogger(__name__)

SITE_FILES_TOOL = "list-sharepoint-site-files"
DOWNLOAD_TOOL = "download-file-to-local"
SEARCH_TOOL = "search-tools"
EXECUTE_TOOL = "execute-tool"

CONTENT_SUFFIX = "/content"

SITE_FILES_DEFINITION: dict[str, Any] = {
    "name": SITE_FILES_TOOL,
    "description": (
        "List files in a SharePoint site document library as a flat list or a tree. "
        "Recurses into folders up to maxDepth."
    ),
    "readOnlyHint": True,
    "inputSchema": {
        "type": "object",
        "properties": {
            "siteId": {"type": "string", "description": "SharePoint site id"},
            "driveId": {"type": "string", "description": "Document library (drive) id"},
            "driveName": {"type": "string", "description": "Document library name"},
            "structure": {"type": "string", "enum": list(STRUCTURES)},
            "includeFolders": {
                "type": "boolean",
                "description": "Include folders in the flat list",
            },
            "maxDepth": {
                "type": "integer",
                "description": f"Maximum folder depth (default {DEFAULT_MAX_DEPTH})",
            },
            "filter": {
                "type": "string",
                "description": 'Name filter: "*.pdf", "report*2024" or a substring',
            },
            "pageSize": {"type": "integer", "description": "Children fetched per request"},
        },
        "required": ["siteId", "structure"],
    },
}

DOWNLOAD_DEFINITION: dict[str, Any] = {
    "name": DOWNLOAD_TOOL,
    "description": "Download a drive item and save it under the configured download directory.",
    "readOnlyHint": False,
    "inputSchema": {
        "type": "object",
        "properties": {
            "driveId": {"type": "string"},
            "driveItemId": {"type": "string"},
            "localPath": {
                "type": "string",
                "description": "Path relative to the download directory",
            },
            "overwrite": {"type": "boolean", "description": "Replace an existing file"},
        },
        "required": ["driveId", "driveItemId", "localPath"],
    },
}

SEARCH_DEFINITION: dict[str, Any] = {
    "name": SEARCH_TOOL,
    "description": (
        "Search the available Microsoft Graph tools by keyword or category. "
        "Use execute-tool to run a tool found here."
    ),
    "readOnlyHint": True,
    "inputSchema": {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Keyword matched against tool names"},
            "category": {"type": "string", "enum": sorted(TOOL_CATEGORIES)},
            "limit": {
                "type": "integer",
                "description": f"Maximum results (default {DEFAULT_SEARCH_LIMIT}, max 50)",
            },
        },
    },
}

EXECUTE_DEFINITION: dict[str, Any] = {
    "name": EXECUTE_TOOL,
    "description": "Execute a Microsoft Graph tool by name. Use search-tools to find tool names.",
    "readOnlyHint": False,
    "inputSchema": {
        "type": "object",
        "properties": {
            "tool_name": {"type": "string"},
            "parameters": {"type": "object", "description": "Parameters for the tool"},
        },
        "required": ["tool_name"],
    },
}


def _optional_str(params: Mapping[str, Any], name: str) -> str | None:
    value = params.get(name)
    if value is None or value == "":
        return None
    return str(value)


def _required_str(params: Mapping[str, Any], name: str) -> str:
    value = _optional_str(params, name)
    if value is None:
        raise ValueError(f"{name} is required")
    return value


def _optional_int(params: Mapping[str, Any], name: str) -> int | None:
    value = params.get(name)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _count_items(data: Any) -> int | None:
    if isinstance(data, dict) and isinstance(data.get("value"), list):
        return len(data["value"])
    return None


class ToolRouter:
    """Single entry point through which every tool invocation flows."""

    def __init__(
        self,
        registry: ToolRegistry,
        graph_client: GraphClient,
        output_format: str = "json",
        download_dir: str = "downloads",
        discovery_mode: bool = False,
    ) -> None:
        """Initialise the router.

        Args:
            registry: Visible endpoint set for the configured mode.
            graph_client: Client shared by every invocation.
            output_format: "json" or "yaml" result encoding.
            download_dir: Base directory for download-file-to-local.
            discovery_mode: Expose only search-tools and execute-tool.
        """
        self.registry = registry
        self.graph_client = graph_client
        self.output_format = output_format
        self.download_dir = download_dir
        self.discovery_mode = discovery_mode
        self._convenience: dict[
            str, Callable[[Mapping[str, Any]], Awaitable[ToolResult]]
        ] = {
            SITE_FILES_TOOL: self.list_site_files,
            DOWNLOAD_TOOL: self.download_file,
        }

    def list_tools(self) -> list[dict[str, Any]]:
        """Tool definitions exposed to callers in the configured mode."""
        if self.discovery_mode:
            return [SEARCH_DEFINITION, EXECUTE_DEFINITION]
        return [*self.registry.list_tools(), SITE_FILES_DEFINITION, DOWNLOAD_DEFINITION]

    def _direct_names(self) -> set[str]:
        return {endpoint.name for endpoint in self.registry} | set(self._convenience)

    async def invoke(self, tool_name: str, params: Mapping[str, Any] | None = None) -> ToolResult:
        """Run one tool and return its result envelope.

        Never raises: every failure is logged and converted into an error
        ToolResult.

        Args:
            tool_name: Name of a listed tool.
            params: Parameter map supplied by the caller.

        Returns:
            ToolResult for the invocation.
        """
        params = params or {}
        try:
            if tool_name == SEARCH_TOOL and self.discovery_mode:
                return self.search_tools(params)
            if tool_name == EXECUTE_TOOL and self.discovery_mode:
                return await self.execute_tool(params)
            if self.discovery_mode or tool_name not in self._direct_names():
                return ToolResult.error(
                    f"Tool not found: {tool_name}",
                    tip="Use GET /tools to list the available tools.",
                )
            return await self._dispatch(tool_name, params)
        except Exception as exc:
            logger.error("[invoke] tool failed; tool:%s", tool_name, exc_info=True)
            return ToolResult.error(f"Error in tool {tool_name}: {exc}")

    async def _dispatch(self, tool_name: str, params: Mapping[str, Any]) -> ToolResult:
        handler = self._convenience.get(tool_name)
        if handler is not None:
            return await handler(params)
        endpoint = self.registry.get(tool_name)
        if endpoint is None:
            raise KeyError(tool_name)
        return await self.execute_endpoint(endpoint, params)

    async def execute_endpoint(
        self, endpoint: EndpointDescriptor, params: Mapping[str, Any]
    ) -> ToolResult:
        """Bind, send, paginate and normalize one endpoint call.

        Raises:
            GraphApiError: If Graph answers with a non-2xx status.
            GraphAuthError: If no usable token can be obtained.
            httpx.TransportError: If the request cannot be sent.
        """
        logger.info(
            "[execute_endpoint] tool called; tool:%s;param_names:%s",
            endpoint.name,
            ",".join(sorted(params)),
        )
        shape = bind_parameters(endpoint, params)

        raw = endpoint.media_content or shape.path.endswith(CONTENT_SUFFIX)
        if endpoint.return_download_url and shape.path.endswith(CONTENT_SUFFIX):
            shape.path = shape.path[: -len(CONTENT_SUFFIX)]
            raw = False
            logger.info(
                "[execute_endpoint] requesting item metadata for download url; path:%s",
                shape.path,
            )

        response = await self.graph_client.request(shape)
        data = decode_body(response)

        if (
            params.get("fetchAllPages") is True
            and shape.method == "GET"
            and _count_items(data) is not None
        ):
            data = await fetch_all_pages(self.graph_client, data, shape)

        meta = capture_headers(response) if params.get("includeHeaders") is True else None
        result = format_response(
            data,
            raw=raw,
            exclude_response=params.get("excludeResponse") is True,
            output_format=self.output_format,
            meta=meta,
        )

        item_count = _count_items(data)
        logger.info(
            "[execute_endpoint] request complete; tool:%s;status:%d;response_size:%d;item_count:%s",
            endpoint.name,
            response.status_code,
            len(result.text),
            item_count if item_count is not None else "-",
        )
        return result

    async def list_site_files(self, params: Mapping[str, Any]) -> ToolResult:
        """List a SharePoint site library; failures are reported as an error result."""
        try:
            structure = _required_str(params, "structure")
            max_depth = _optional_int(params, "maxDepth")
            options = TreeOptions(
                site_id=_required_str(params, "siteId"),
                structure=structure,
                drive_id=_optional_str(params, "driveId"),
                drive_name=_optional_str(params, "driveName"),
                include_folders=params.get("includeFolders") is True,
                max_depth=max_depth if max_depth is not None else DEFAULT_MAX_DEPTH,
                filter=_optional_str(params, "filter"),
                page_size=_optional_int(params, "pageSize"),
            )
            result = await DriveTreeCollector(self.graph_client).collect(options)
        except Exception as exc:
            logger.error("[list_site_files] listing failed", exc_info=True)
            return ToolResult.error(f"Failed to list SharePoint site files: {exc}")
        return ToolResult.from_text(serialize(result.to_dict(), self.output_format, pretty=True))

    async def download_file(self, params: Mapping[str, Any]) -> ToolResult:
        """Save a drive item under the download directory; failures become error results."""
        try:
            summary = await download_to_local(
                self.graph_client,
                self.download_dir,
                drive_id=_required_str(params, "driveId"),
                drive_item_id=_required_str(params, "driveItemId"),
                local_path=_required_str(params, "localPath"),
                overwrite=params.get("overwrite") is True,
            )
        except Exception as exc:
            logger.warning("[download_file] download failed; error:%s", exc)
            return ToolResult.error(f"Failed to download file to local path: {exc}")
        return ToolResult.from_text(serialize(summary, self.output_format, pretty=True))

    def search_tools(self, params: Mapping[str, Any]) -> ToolResult:
        limit = _optional_int(params, "limit")
        query = _optional_str(params, "query")
        category = _optional_str(params, "category")
        found = self.registry.search(
            query=query,
            category=category,
            limit=limit if limit is not None else DEFAULT_SEARCH_LIMIT,
        )
        logger.info(
            "[search_tools] search complete; query:%s;category:%s;found:%d",
            query,
            category,
            len(found),
        )
        payload = {
            "found": len(found),
            "total": len(self.registry),
            "tools": found,
            "tip": (
                "Use execute-tool with the tool name and required parameters "
                "to call any of these tools."
            ),
        }
        return ToolResult.from_text(serialize(payload, self.output_format, pretty=True))

    async def execute_tool(self, params: Mapping[str, Any]) -> ToolResult:
        tool_name = _required_str(params, "tool_name")
        arguments = params.get("parameters") or {}
        if not isinstance(arguments, Mapping):
            raise ValueError("parameters must be an object")
        if tool_name not in self._direct_names():
            return ToolResult.error(
                f"Tool not found: {tool_name}",
                tip="Use search-tools to find available tools.",
            )
        logger.info("[execute_tool] executing tool; tool:%s", tool_name)
        try:
            return await self._dispatch(tool_name, arguments)
        except Exception as exc:
            logger.error("[execute_tool] tool failed; tool:%s", tool_name, exc_info=True)
            return ToolResult.error(f"Error in tool {tool_name}: {exc}")


def tool_router_from_config(
    config: AppConfig, graph_client: GraphClient | None = None
) -> ToolRouter:
    """Construct a ToolRouter from application configuration.

    Args:
        config: Application configuration instance.
        graph_client: Optional pre-built client; built from config when omitted.

    Returns:
        Configured ToolRouter instance.
    """
    endpoints = load_catalog(config.catalog_path)
    registry = ToolRegistry(
        endpoints,
        ToolMode(
            read_only=config.read_only,
            org_mode=config.org_mode,
            enabled_tools=config.enabled_tools,
        ),
    )
    return ToolRouter(
        registry=registry,
        graph_client=graph_client or graph_client_from_config(config),
        output_format=config.output_format,
        download_dir=config.download_dir,
        discovery_mode=config.discovery_mode,
    )
