"""Download of drive item content into a local base directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

if TYPE_CHECKING:
    from graph_relay.graph.client import GraphClient

logger = logging.getLogger(__name__)


class PathTraversalError(ValueError):
    """Raised when a requested local path resolves outside the download directory."""


def resolve_target(base_dir: str | Path, local_path: str) -> tuple[Path, Path]:
    """Resolve a caller-supplied relative path under the download directory.

    Args:
        base_dir: Directory every download must stay within.
        local_path: Relative path requested by the caller.

    Returns:
        Tuple of (resolved_base, resolved_target).

    Raises:
        PathTraversalError: If the target escapes the base directory.
    """
    base = Path(base_dir).resolve()
    target = (base / local_path).resolve()
    if not target.is_relative_to(base) or target == base:
        raise PathTraversalError(
            f"Invalid localPath: resolved path escapes download base directory ({base})."
        )
    return base, target


async def download_to_local(
    graph_client: GraphClient,
    base_dir: str | Path,
    drive_id: str,
    drive_item_id: str,
    local_path: str,
    overwrite: bool = False,
) -> dict[str, Any]:
    """Fetch a drive item's bytes and write them under base_dir.

    The target path is validated before anything touches the filesystem or
    the network.

    Args:
        graph_client: Authenticated GraphClient.
        base_dir: Download base directory.
        drive_id: Drive containing the item.
        drive_item_id: Item to download.
        local_path: Relative target path under base_dir.
        overwrite: Replace an existing file at the target path.

    Returns:
        Summary with the saved path and size.

    Raises:
        PathTraversalError: If local_path escapes base_dir.
        FileExistsError: If the target exists and overwrite is False.
    """
    base, target = resolve_target(base_dir, local_path)

    if not overwrite and target.exists():
        raise FileExistsError(f"File already exists at {target}. Set overwrite=true to replace it.")

    endpoint = f"/drives/{quote(drive_id, safe='')}/items/{quote(drive_item_id, safe='')}/content"
    logger.info(
        "[download_to_local] downloading file content; drive_id:%s;drive_item_id:%s;target:%s",
        drive_id,
        drive_item_id,
        target,
    )
    content = await graph_client.download(endpoint)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)

    return {
        "success": True,
        "savedAs": str(target),
        "size": len(content),
        "driveId": drive_id,
        "driveItemId": drive_item_id,
        "baseDir": str(base),
    }
