"""Unit tests for graph/models.py — request shapes, responses and file nodes."""

from graph_relay.graph.models import FileNode, GraphResponse, RequestShape


class TestRequestShape:
    def test_url_path_without_query(self) -> None:
        assert RequestShape(method="GET", path="/me").url_path == "/me"

    def test_url_path_encodes_values(self) -> None:
        shape = RequestShape(
            method="GET",
            path="/me/messages",
            query={"$filter": "subject eq 'a&b'", "$top": "5"},
        )
        assert shape.url_path == "/me/messages?$filter=subject%20eq%20%27a%26b%27&$top=5"

    def test_url_path_merges_with_existing_query(self) -> None:
        shape = RequestShape(
            method="GET",
            path="/me/calendarView?startDateTime=a&endDateTime=b",
            query={"$top": "1"},
        )
        assert shape.url_path == "/me/calendarView?startDateTime=a&endDateTime=b&$top=1"


class TestGraphResponse:
    def test_text_decodes_utf8(self) -> None:
        response = GraphResponse(200, "OK", {}, "héllo".encode())
        assert response.text == "héllo"

    def test_header_lookup_is_case_insensitive(self) -> None:
        response = GraphResponse(200, "OK", {"etag": 'W/"1"'}, b"")
        assert response.header("ETag") == 'W/"1"'
        assert response.header("Location") is None


class TestFileNode:
    def test_to_dict_omits_unset_fields(self) -> None:
        node = FileNode(
            site_id="s1",
            drive_id="d1",
            drive_item_id="i1",
            name="Docs",
            path="/Docs",
            is_folder=True,
        )
        assert node.to_dict() == {
            "siteId": "s1",
            "driveId": "d1",
            "driveItemId": "i1",
            "name": "Docs",
            "isFolder": True,
            "path": "/Docs",
        }

    def test_to_dict_includes_metadata_and_children(self) -> None:
        child = FileNode("s1", "d1", "i2", "a.pdf", "/Docs/a.pdf", False, size=10)
        node = FileNode(
            site_id="s1",
            drive_id="d1",
            drive_item_id="i1",
            name="Docs",
            path="/Docs",
            is_folder=True,
            web_url="https://contoso/Docs",
            last_modified_date_time="2024-01-01T00:00:00Z",
            children=[child],
        )
        data = node.to_dict()
        assert data["webUrl"] == "https://contoso/Docs"
        assert data["lastModifiedDateTime"] == "2024-01-01T00:00:00Z"
        assert data["children"] == [child.to_dict()]
        assert data["children"][0]["size"] == 10

    def test_empty_children_list_is_kept(self) -> None:
        node = FileNode("s1", "d1", "i1", "Empty", "/Empty", True, children=[])
        assert node.to_dict()["children"] == []
