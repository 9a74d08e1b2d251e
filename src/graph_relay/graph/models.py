"""Data models for Graph requests, responses and drive items."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

# Graph API JSON field names
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_FOLDER = "folder"
FIELD_FILE = "file"
FIELD_ROOT = "root"
FIELD_SIZE = "size"
FIELD_WEB_URL = "webUrl"
FIELD_MIME_TYPE = "mimeType"
FIELD_CREATED = "createdDateTime"
FIELD_LAST_MODIFIED = "lastModifiedDateTime"
FIELD_FILE_SYSTEM_INFO = "fileSystemInfo"

# OData response keys
ODATA_PREFIX = "@odata."
ODATA_NEXT_LINK = "@odata.nextLink"
ODATA_COUNT = "@odata.count"
ODATA_VALUE = "value"


@dataclass
class RequestShape:
    """Concrete HTTP request built for one tool invocation."""

    method: str
    path: str
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None

    @property
    def url_path(self) -> str:
        """Path with the encoded query appended, merging with any existing query string."""
        if not self.query:
            return self.path
        query_string = "&".join(
            f"{quote(key, safe='$')}={quote(value, safe='')}" for key, value in self.query.items()
        )
        separator = "&" if "?" in self.path else "?"
        return f"{self.path}{separator}{query_string}"


@dataclass
class GraphResponse:
    """Successful (2xx) response from the Graph API."""

    status_code: int
    reason: str
    headers: dict[str, str]
    content: bytes

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


@dataclass
class DriveInfo:
    """Document library resolved for a SharePoint site."""

    drive_id: str
    drive_name: str
    root_item_id: str


@dataclass
class FileNode:
    """One file or folder collected from a document library."""

    site_id: str
    drive_id: str
    drive_item_id: str
    name: str
    path: str
    is_folder: bool
    web_url: str | None = None
    size: int | None = None
    mime_type: str | None = None
    created_date_time: str | None = None
    last_modified_date_time: str | None = None
    children: list[FileNode] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with Graph-style camelCase keys, omitting unset optional fields."""
        data: dict[str, Any] = {
            "siteId": self.site_id,
            "driveId": self.drive_id,
            "driveItemId": self.drive_item_id,
            "name": self.name,
        }
        optional = {
            "webUrl": self.web_url,
            "size": self.size,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        data["isFolder"] = self.is_folder
        optional = {
            "mimeType": self.mime_type,
            "createdDateTime": self.created_date_time,
            "lastModifiedDateTime": self.last_modified_date_time,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        data["path"] = self.path
        if self.children is not None:
            data["children"] = [child.to_dict() for child in self.children]
        return data
