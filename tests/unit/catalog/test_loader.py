"""Unit tests for catalog/loader.py — catalog parsing and loading."""

import json
from pathlib import Path

import pytest

from graph_relay.catalog.loader import CatalogError, load_catalog, parse_endpoint
from graph_relay.catalog.models import ParameterKind

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_record(**overrides: object) -> dict[str, object]:
    record: dict[str, object] = {
        "toolName": "get-mail-message",
        "method": "get",
        "pathPattern": "/me/messages/{message-id}",
        "scopes": ["Mail.Read"],
        "parameters": [
            {"name": "message-id", "type": "Path", "required": True},
            {"name": "select", "type": "Query", "description": "Fields"},
        ],
    }
    record.update(overrides)
    return record


def _write_catalog(tmp_path: Path, records: object) -> Path:
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# parse_endpoint tests
# ---------------------------------------------------------------------------


class TestParseEndpoint:
    def test_maps_fields(self) -> None:
        endpoint = parse_endpoint(
            _make_record(
                workScopes=["Mail.Read.Shared"],
                returnDownloadUrl=True,
                supportsTimezone=True,
                mediaContent=True,
                llmTip="Use select.",
                description="Get one message.",
            )
        )
        assert endpoint.name == "get-mail-message"
        assert endpoint.method == "GET"
        assert endpoint.path == "/me/messages/{message-id}"
        assert endpoint.scopes == ("Mail.Read",)
        assert endpoint.work_scopes == ("Mail.Read.Shared",)
        assert endpoint.return_download_url is True
        assert endpoint.supports_timezone is True
        assert endpoint.media_content is True
        assert endpoint.llm_tip == "Use select."
        assert endpoint.description == "Get one message."

    def test_maps_parameters(self) -> None:
        endpoint = parse_endpoint(_make_record())
        path_param, query_param = endpoint.parameters
        assert path_param.kind is ParameterKind.PATH
        assert path_param.required is True
        assert query_param.kind is ParameterKind.QUERY
        assert query_param.description == "Fields"

    def test_optional_flags_default_to_false(self) -> None:
        endpoint = parse_endpoint(_make_record())
        assert endpoint.work_scopes == ()
        assert endpoint.return_download_url is False
        assert endpoint.supports_timezone is False
        assert endpoint.media_content is False
        assert endpoint.llm_tip is None

    def test_missing_required_field_raises(self) -> None:
        record = _make_record()
        del record["pathPattern"]
        with pytest.raises(CatalogError, match="pathPattern"):
            parse_endpoint(record)

    def test_unknown_parameter_type_raises(self) -> None:
        record = _make_record(parameters=[{"name": "x", "type": "Cookie"}])
        with pytest.raises(CatalogError, match="Cookie"):
            parse_endpoint(record)


# ---------------------------------------------------------------------------
# load_catalog tests
# ---------------------------------------------------------------------------


class TestLoadCatalog:
    def test_preserves_order(self, tmp_path: Path) -> None:
        path = _write_catalog(
            tmp_path,
            [_make_record(toolName="b"), _make_record(toolName="a")],
        )
        endpoints = load_catalog(path)
        assert [e.name for e in endpoints] == ["b", "a"]

    def test_duplicate_names_keep_first(self, tmp_path: Path) -> None:
        path = _write_catalog(
            tmp_path,
            [_make_record(method="get"), _make_record(method="delete")],
        )
        endpoints = load_catalog(path)
        assert len(endpoints) == 1
        assert endpoints[0].method == "GET"

    def test_non_list_document_raises(self, tmp_path: Path) -> None:
        path = _write_catalog(tmp_path, {"toolName": "x"})
        with pytest.raises(CatalogError):
            load_catalog(path)

    def test_packaged_catalog_loads(self) -> None:
        endpoints = load_catalog()
        names = [e.name for e in endpoints]
        assert len(names) == len(set(names))
        assert "list-mail-messages" in names
        assert "get-calendar-view" in names
