"""Unit tests for graph/binder.py — parameter placement into RequestShape."""

import json

import pytest

from graph_relay.catalog.models import EndpointDescriptor, ParameterDescriptor, ParameterKind
from graph_relay.graph.binder import bind_parameters, normalize_query_name

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_ODATA_NAMES = ["filter", "select", "expand", "orderby", "skip", "top", "count", "search", "format"]

_SEARCH_SCHEMA = {
    "type": "object",
    "required": ["requests"],
    "properties": {"requests": {"type": "array"}},
}


def _make_endpoint(
    *params: ParameterDescriptor,
    method: str = "GET",
    path: str = "/me/messages",
    supports_timezone: bool = False,
) -> EndpointDescriptor:
    return EndpointDescriptor(
        name="test-tool",
        method=method,
        path=path,
        parameters=params,
        supports_timezone=supports_timezone,
    )


def _query(name: str) -> ParameterDescriptor:
    return ParameterDescriptor(name=name, kind=ParameterKind.QUERY)


# ---------------------------------------------------------------------------
# normalize_query_name tests
# ---------------------------------------------------------------------------


class TestNormalizeQueryName:
    @pytest.mark.parametrize("name", _ODATA_NAMES)
    def test_prefixed_and_bare_names_agree(self, name: str) -> None:
        assert normalize_query_name(name)[0] == f"${name}"
        assert normalize_query_name(f"${name}")[0] == f"${name}"

    def test_case_insensitive(self) -> None:
        assert normalize_query_name("Top") == ("$top", "Top", True)

    def test_non_odata_name_unchanged(self) -> None:
        assert normalize_query_name("startDateTime") == ("startDateTime", "startDateTime", False)


# ---------------------------------------------------------------------------
# bind_parameters tests
# ---------------------------------------------------------------------------


class TestPathBinding:
    def test_replaces_every_occurrence_of_both_syntaxes(self) -> None:
        endpoint = _make_endpoint(
            ParameterDescriptor(name="id", kind=ParameterKind.PATH),
            path="/items/{id}/copies/{id}/versions/:id",
        )
        shape = bind_parameters(endpoint, {"id": "abc"})
        assert shape.path == "/items/abc/copies/abc/versions/abc"

    def test_value_is_percent_encoded(self) -> None:
        endpoint = _make_endpoint(
            ParameterDescriptor(name="message-id", kind=ParameterKind.PATH),
            path="/me/messages/{message-id}",
        )
        shape = bind_parameters(endpoint, {"message-id": "a/b c=="})
        assert shape.path == "/me/messages/a%2Fb%20c%3D%3D"


class TestQueryBinding:
    @pytest.mark.parametrize("name", _ODATA_NAMES)
    def test_odata_names_are_prefixed(self, name: str) -> None:
        endpoint = _make_endpoint(_query(name))
        bare = bind_parameters(endpoint, {name: "v"})
        prefixed = bind_parameters(endpoint, {f"${name}": "v"})
        assert bare.query == {f"${name}": "v"}
        assert prefixed.query == {f"${name}": "v"}

    def test_booleans_render_lowercase(self) -> None:
        endpoint = _make_endpoint(_query("count"))
        shape = bind_parameters(endpoint, {"count": True})
        assert shape.query == {"$count": "true"}

    def test_list_value_is_comma_joined(self) -> None:
        endpoint = _make_endpoint(_query("select"))
        shape = bind_parameters(endpoint, {"select": ["id", "subject"]})
        assert shape.query == {"$select": "id,subject"}
        assert shape.url_path == "/me/messages?$select=id%2Csubject"

    def test_list_elements_follow_boolean_rendering(self) -> None:
        endpoint = _make_endpoint(_query("flags"))
        shape = bind_parameters(endpoint, {"flags": (True, False, 3)})
        assert shape.query == {"flags": "true,false,3"}

    def test_mapping_value_sent_as_json(self) -> None:
        endpoint = _make_endpoint(_query("filterSpec"))
        shape = bind_parameters(endpoint, {"filterSpec": {"a": 1}})
        assert json.loads(shape.query["filterSpec"]) == {"a": 1}

    def test_none_value_renders_empty(self) -> None:
        endpoint = _make_endpoint(_query("search"))
        shape = bind_parameters(endpoint, {"search": None})
        assert shape.query == {"$search": ""}

    def test_plain_query_name_kept(self) -> None:
        endpoint = _make_endpoint(_query("startDateTime"))
        shape = bind_parameters(endpoint, {"startDateTime": "2024-01-01"})
        assert shape.query == {"startDateTime": "2024-01-01"}

    def test_unknown_parameters_dropped(self) -> None:
        endpoint = _make_endpoint(_query("top"))
        shape = bind_parameters(endpoint, {"bogus": "1", "top": 5})
        assert shape.query == {"$top": "5"}
        assert shape.body is None

    def test_control_parameters_never_forwarded(self) -> None:
        endpoint = _make_endpoint(_query("top"))
        shape = bind_parameters(
            endpoint,
            {"fetchAllPages": True, "includeHeaders": True, "excludeResponse": True, "top": 1},
        )
        assert shape.query == {"$top": "1"}
        assert shape.headers == {}


class TestHeaderBinding:
    def test_header_parameter(self) -> None:
        endpoint = _make_endpoint(
            ParameterDescriptor(name="ConsistencyLevel", kind=ParameterKind.HEADER)
        )
        shape = bind_parameters(endpoint, {"ConsistencyLevel": "eventual"})
        assert shape.headers == {"ConsistencyLevel": "eventual"}

    def test_timezone_sets_prefer_header_when_supported(self) -> None:
        endpoint = _make_endpoint(supports_timezone=True)
        shape = bind_parameters(endpoint, {"timezone": "Europe/London"})
        assert shape.headers == {"Prefer": 'outlook.timezone="Europe/London"'}
        assert shape.query == {}

    def test_timezone_ignored_when_unsupported(self) -> None:
        shape = bind_parameters(_make_endpoint(), {"timezone": "Europe/London"})
        assert "Prefer" not in shape.headers


class TestBodyBinding:
    def test_valid_body_forwarded_as_is(self) -> None:
        endpoint = _make_endpoint(
            ParameterDescriptor(name="requests", kind=ParameterKind.BODY, schema=_SEARCH_SCHEMA),
            method="POST",
        )
        body = {"requests": [{"entityTypes": ["driveItem"]}]}
        shape = bind_parameters(endpoint, {"requests": body})
        assert json.loads(shape.body or "") == body

    def test_invalid_body_wrapped_when_wrapping_validates(self) -> None:
        endpoint = _make_endpoint(
            ParameterDescriptor(name="requests", kind=ParameterKind.BODY, schema=_SEARCH_SCHEMA),
            method="POST",
        )
        value = [{"entityTypes": ["driveItem"]}]
        shape = bind_parameters(endpoint, {"requests": value})
        assert json.loads(shape.body or "") == {"requests": value}

    def test_invalid_body_forwarded_when_wrapping_fails(self) -> None:
        endpoint = _make_endpoint(
            ParameterDescriptor(name="requests", kind=ParameterKind.BODY, schema=_SEARCH_SCHEMA),
            method="POST",
        )
        shape = bind_parameters(endpoint, {"requests": 42})
        assert shape.body == "42"

    def test_string_body_not_re_encoded(self) -> None:
        endpoint = _make_endpoint(
            ParameterDescriptor(name="body", kind=ParameterKind.BODY), method="POST"
        )
        shape = bind_parameters(endpoint, {"body": '{"a": 1}'})
        assert shape.body == '{"a": 1}'

    def test_unlisted_body_key_used_as_body(self) -> None:
        shape = bind_parameters(_make_endpoint(method="PATCH"), {"body": {"subject": "x"}})
        assert json.loads(shape.body or "") == {"subject": "x"}

    def test_get_never_sends_body(self) -> None:
        endpoint = _make_endpoint(ParameterDescriptor(name="body", kind=ParameterKind.BODY))
        shape = bind_parameters(endpoint, {"body": {"a": 1}})
        assert shape.body is None

    def test_empty_string_body_not_sent(self) -> None:
        endpoint = _make_endpoint(
            ParameterDescriptor(name="body", kind=ParameterKind.BODY), method="POST"
        )
        shape = bind_parameters(endpoint, {"body": ""})
        assert shape.body is None

    def test_method_copied_from_descriptor(self) -> None:
        shape = bind_parameters(_make_endpoint(method="delete"), {})
        assert shape.method == "DELETE"
