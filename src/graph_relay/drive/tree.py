"""Recursive listing of a SharePoint site document library."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlparse

from graph_relay.graph.models import (
    FIELD_CREATED,
    FIELD_FILE,
    FIELD_FILE_SYSTEM_INFO,
    FIELD_FOLDER,
    FIELD_ID,
    FIELD_LAST_MODIFIED,
    FIELD_MIME_TYPE,
    FIELD_NAME,
    FIELD_ROOT,
    FIELD_SIZE,
    FIELD_WEB_URL,
    ODATA_NEXT_LINK,
    ODATA_VALUE,
    DriveInfo,
    FileNode,
)
from graph_relay.graph.pagination import API_VERSION_PREFIX

if TYPE_CHECKING:
    from graph_relay.graph.client import GraphClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10
SAFE_MAX_DEPTH = 20
PREFERRED_DRIVE_NAMES = ("dokumente", "documents", "shared documents")
STRUCTURES = ("flat", "tree")


class DriveResolutionError(Exception):
    """Raised when a site's document library or its root cannot be resolved."""


def _normalize(value: str | None) -> str:
    return (value or "").strip().lower()


def _find_drive(drives: list[dict[str, Any]], key: str, wanted: str) -> dict[str, Any] | None:
    for drive in drives:
        if drive.get(key) and _normalize(drive[key]) == _normalize(wanted):
            return drive
    return None


def matches_filter(name: str | None, pattern: str | None) -> bool:
    """Match an item name against a user-supplied filter.

    Supports "*.ext" suffix patterns, "*" wildcards and plain substrings,
    all case-insensitive. An empty pattern matches everything.
    """
    if not pattern:
        return True
    if not name:
        return False

    lowered_name = name.lower()
    lowered_pattern = pattern.lower()

    if lowered_pattern.startswith("*.") and len(lowered_pattern) > 2:
        return lowered_name.endswith(lowered_pattern[1:])

    if "*" in lowered_pattern:
        regex = ".*".join(re.escape(part) for part in lowered_pattern.split("*"))
        return re.fullmatch(regex, name, re.IGNORECASE) is not None

    return lowered_pattern in lowered_name


@dataclass
class TreeOptions:
    """Inputs of one library listing."""

    site_id: str
    structure: str = "flat"
    drive_id: str | None = None
    drive_name: str | None = None
    include_folders: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH
    filter: str | None = None
    page_size: int | None = None

    @property
    def effective_max_depth(self) -> int:
        return min(self.max_depth, SAFE_MAX_DEPTH)


@dataclass
class TreeResult:
    """Outcome of a library listing: a flat item list or a root node."""

    structure: str
    site_id: str
    drive: DriveInfo
    truncated: bool
    items: list[FileNode] | None = None
    root: FileNode | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "structure": self.structure,
            "driveId": self.drive.drive_id,
            "driveName": self.drive.drive_name,
            "siteId": self.site_id,
        }
        if self.structure == "flat":
            payload["items"] = [item.to_dict() for item in self.items or []]
        elif self.root is not None:
            payload["root"] = self.root.to_dict()
        payload["truncated"] = self.truncated
        return {
            "siteId": self.site_id,
            "driveId": self.drive.drive_id,
            "driveName": self.drive.drive_name,
            "structure": self.structure,
            "payload": payload,
        }


@dataclass
class _Frame:
    """A folder being walked: its node, remaining children and collected child nodes."""

    node: FileNode
    depth: int
    pending: Iterator[dict[str, Any]]
    child_nodes: list[FileNode] = field(default_factory=list)


class DriveTreeCollector:
    """Walks a document library depth-first, one folder at a time."""

    def __init__(self, graph_client: GraphClient) -> None:
        self._graph = graph_client

    async def resolve_site_drive(
        self,
        site_id: str,
        drive_id: str | None = None,
        drive_name: str | None = None,
    ) -> DriveInfo:
        """Pick a document library of a site and resolve its root item.

        Selection order: matching drive id, matching drive name, a commonly
        used default library name, then the first library.

        Raises:
            DriveResolutionError: If the site has no libraries or ids are missing.
        """
        logger.info("[resolve_site_drive] resolving drives; site_id:%s", site_id)
        result = await self._graph.get_json(f"/sites/{quote(site_id, safe='')}/drives")
        drives = result.get(ODATA_VALUE) or []
        if not isinstance(drives, list) or not drives:
            raise DriveResolutionError(
                f"No document libraries (drives) found for siteId={site_id}"
            )

        selected: dict[str, Any] | None = None
        if drive_id:
            selected = _find_drive(drives, FIELD_ID, drive_id)
        if selected is None and drive_name:
            selected = _find_drive(drives, FIELD_NAME, drive_name)
        if selected is None:
            selected = next(
                (d for d in drives if _normalize(d.get(FIELD_NAME)) in PREFERRED_DRIVE_NAMES),
                drives[0],
            )

        selected_id = selected.get(FIELD_ID)
        if not selected_id:
            raise DriveResolutionError(
                f"Failed to resolve drive for siteId={site_id} (missing drive id)"
            )

        root_item_id = (selected.get(FIELD_ROOT) or {}).get(FIELD_ID)
        if not root_item_id:
            logger.info(
                "[resolve_site_drive] drive listing has no root id, fetching root; drive_id:%s",
                selected_id,
            )
            drive_root = await self._graph.get_json(f"/drives/{quote(selected_id, safe='')}/root")
            root_item_id = drive_root.get(FIELD_ID)
            if not root_item_id:
                raise DriveResolutionError(
                    f"Failed to resolve drive root item for siteId={site_id}, "
                    f"driveId={selected_id} (missing root id)"
                )

        return DriveInfo(
            drive_id=selected_id,
            drive_name=selected.get(FIELD_NAME) or selected_id,
            root_item_id=root_item_id,
        )

    async def list_children(
        self, drive_id: str, item_id: str, page_size: int | None = None
    ) -> list[dict[str, Any]]:
        """List every child of a folder, following all continuation cursors."""
        endpoint = f"/drives/{quote(drive_id, safe='')}/items/{quote(item_id, safe='')}/children"
        if page_size and page_size > 0:
            endpoint = f"{endpoint}?$top={page_size}"

        items: list[dict[str, Any]] = []
        while True:
            logger.info(
                "[list_children] listing children; drive_id:%s;item_id:%s", drive_id, item_id
            )
            try:
                response = await self._graph.get_json(endpoint)
            except ValueError:
                logger.warning(
                    "[list_children] child page is not JSON, stopping pagination; endpoint:%s",
                    endpoint,
                )
                break
            page_items = response.get(ODATA_VALUE) or []
            if isinstance(page_items, list):
                items.extend(page_items)

            next_link = response.get(ODATA_NEXT_LINK)
            if not next_link or not isinstance(next_link, str):
                break

            parsed = urlparse(next_link)
            if not parsed.scheme or not parsed.netloc:
                logger.warning(
                    "[list_children] invalid nextLink, stopping pagination; link:%s", next_link
                )
                break
            path = parsed.path
            if path.startswith(API_VERSION_PREFIX):
                path = path[len(API_VERSION_PREFIX) :]
            endpoint = f"{path}?{parsed.query}" if parsed.query else path

        return items

    def _file_node(
        self, site_id: str, drive: DriveInfo, item: dict[str, Any], path: str
    ) -> FileNode:
        file_system_info = item.get(FIELD_FILE_SYSTEM_INFO) or {}
        size = item.get(FIELD_SIZE)
        return FileNode(
            site_id=site_id,
            drive_id=drive.drive_id,
            drive_item_id=item.get(FIELD_ID) or "",
            name=item.get(FIELD_NAME) or "",
            path=path,
            is_folder=item.get(FIELD_FOLDER) is not None,
            web_url=item.get(FIELD_WEB_URL),
            size=size if isinstance(size, int) and not isinstance(size, bool) else None,
            mime_type=(item.get(FIELD_FILE) or {}).get(FIELD_MIME_TYPE),
            created_date_time=item.get(FIELD_CREATED) or file_system_info.get(FIELD_CREATED),
            last_modified_date_time=(
                item.get(FIELD_LAST_MODIFIED) or file_system_info.get(FIELD_LAST_MODIFIED)
            ),
        )

    async def _open(
        self, node: FileNode, depth: int, drive: DriveInfo, page_size: int | None
    ) -> _Frame:
        children = await self.list_children(drive.drive_id, node.drive_item_id, page_size)
        return _Frame(node=node, depth=depth, pending=iter(children))

    async def collect(self, options: TreeOptions) -> TreeResult:
        """List a library as a flat filtered list or a nested tree.

        Folders are descended into while their parent's depth is below the
        effective maximum depth; deeper folders are skipped and the result
        is flagged as truncated.

        Args:
            options: Site, library selection, structure and traversal limits.

        Returns:
            TreeResult with either items (flat) or root (tree).
        """
        if options.structure not in STRUCTURES:
            raise ValueError(f"structure must be one of {STRUCTURES}, got {options.structure!r}")

        site_id = options.site_id
        max_depth = options.effective_max_depth
        tree_mode = options.structure == "tree"

        drive = await self.resolve_site_drive(site_id, options.drive_id, options.drive_name)
        logger.info(
            "[collect] resolved drive; site_id:%s;drive_id:%s;drive_name:%s;root_item_id:%s",
            site_id,
            drive.drive_id,
            drive.drive_name,
            drive.root_item_id,
        )

        root = FileNode(
            site_id=site_id,
            drive_id=drive.drive_id,
            drive_item_id=drive.root_item_id,
            name=drive.drive_name,
            path="/",
            is_folder=True,
        )
        flat_items: list[FileNode] = []
        truncated = False
        stack = [await self._open(root, 0, drive, options.page_size)]

        while stack:
            frame = stack[-1]
            item = next(frame.pending, None)
            if item is None:
                stack.pop()
                if tree_mode:
                    frame.node.children = frame.child_nodes
                continue

            name = item.get(FIELD_NAME) or ""
            parent_path = frame.node.path
            child_path = f"/{name}" if parent_path == "/" else f"{parent_path}/{name}"
            node = self._file_node(site_id, drive, item, child_path)

            if matches_filter(name, options.filter) and (
                not node.is_folder or options.include_folders
            ):
                flat_items.append(node)

            if not node.is_folder:
                if tree_mode:
                    frame.child_nodes.append(node)
                continue

            if frame.depth < max_depth:
                folder = FileNode(
                    site_id=site_id,
                    drive_id=drive.drive_id,
                    drive_item_id=node.drive_item_id,
                    name=name,
                    path=child_path,
                    is_folder=True,
                )
                frame.child_nodes.append(folder)
                stack.append(await self._open(folder, frame.depth + 1, drive, options.page_size))
            else:
                truncated = True

        logger.info(
            "[collect] library walk complete; structure:%s;item_count:%d;truncated:%s",
            options.structure,
            len(flat_items),
            truncated,
        )
        if tree_mode:
            return TreeResult(
                structure="tree", site_id=site_id, drive=drive, truncated=truncated, root=root
            )
        return TreeResult(
            structure="flat", site_id=site_id, drive=drive, truncated=truncated, items=flat_items
        )
