"""Unit tests for tools/registry.py — visibility filtering, listings and search."""

import pytest

from graph_relay.catalog.models import EndpointDescriptor, ParameterDescriptor, ParameterKind
from graph_relay.tools.registry import ToolMode, ToolRegistry, input_schema, tool_description

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_endpoints() -> list[EndpointDescriptor]:
    return [
        EndpointDescriptor(
            name="list-mail-messages",
            method="GET",
            path="/me/messages",
            description="List messages.",
            scopes=("Mail.Read",),
            llm_tip="Filter on receivedDateTime.",
            parameters=(
                ParameterDescriptor(name="top", kind=ParameterKind.QUERY, description="Page size"),
            ),
        ),
        EndpointDescriptor(
            name="send-mail",
            method="POST",
            path="/me/sendMail",
            scopes=("Mail.Send",),
            parameters=(
                ParameterDescriptor(
                    name="body", kind=ParameterKind.BODY, schema={"type": "object"}, required=True
                ),
            ),
        ),
        EndpointDescriptor(
            name="list-calendar-events",
            method="GET",
            path="/me/events",
            scopes=("Calendars.Read",),
            supports_timezone=True,
        ),
        EndpointDescriptor(
            name="list-users", method="GET", path="/users", work_scopes=("User.Read.All",)
        ),
        EndpointDescriptor(
            name="list-joined-teams",
            method="GET",
            path="/me/joinedTeams",
            scopes=("Team.ReadBasic.All",),
            work_scopes=("Team.ReadBasic.All",),
        ),
    ]


def _names(registry: ToolRegistry) -> list[str]:
    return [endpoint.name for endpoint in registry]


# ---------------------------------------------------------------------------
# Visibility tests
# ---------------------------------------------------------------------------


class TestVisibility:
    def test_default_mode_hides_work_only_tools(self) -> None:
        registry = ToolRegistry(_make_endpoints(), ToolMode())
        assert _names(registry) == [
            "list-mail-messages",
            "send-mail",
            "list-calendar-events",
            "list-joined-teams",
        ]

    def test_org_mode_shows_work_only_tools(self) -> None:
        registry = ToolRegistry(_make_endpoints(), ToolMode(org_mode=True))
        assert "list-users" in registry
        assert len(registry) == 5

    def test_read_only_hides_non_get(self) -> None:
        registry = ToolRegistry(_make_endpoints(), ToolMode(read_only=True, org_mode=True))
        assert "send-mail" not in registry
        assert all(endpoint.is_read_only for endpoint in registry)

    def test_pattern_is_case_insensitive_search(self) -> None:
        registry = ToolRegistry(_make_endpoints(), ToolMode(enabled_tools="MAIL|calendar"))
        assert _names(registry) == ["list-mail-messages", "send-mail", "list-calendar-events"]

    def test_invalid_pattern_ignored(self) -> None:
        registry = ToolRegistry(_make_endpoints(), ToolMode(enabled_tools="mail("))
        assert len(registry) == 4

    def test_get_unknown_returns_none(self) -> None:
        registry = ToolRegistry(_make_endpoints(), ToolMode())
        assert registry.get("list-users") is None
        assert registry.get("send-mail") is not None


# ---------------------------------------------------------------------------
# Listing tests
# ---------------------------------------------------------------------------


class TestListing:
    def test_description_gets_tip_suffix(self) -> None:
        endpoint = _make_endpoints()[0]
        assert tool_description(endpoint) == "List messages.\n\nTIP: Filter on receivedDateTime."

    def test_description_default(self) -> None:
        endpoint = _make_endpoints()[1]
        assert tool_description(endpoint) == "Execute POST request to /me/sendMail"

    def test_get_tools_offer_fetch_all_pages(self) -> None:
        schema = input_schema(_make_endpoints()[0])
        assert set(schema["properties"]) == {
            "top",
            "fetchAllPages",
            "includeHeaders",
            "excludeResponse",
        }
        assert schema["properties"]["top"]["description"] == "Page size"
        assert "required" not in schema

    def test_write_tools_do_not_offer_fetch_all_pages(self) -> None:
        schema = input_schema(_make_endpoints()[1])
        assert "fetchAllPages" not in schema["properties"]
        assert schema["required"] == ["body"]
        assert schema["properties"]["body"] == {"type": "object"}

    def test_timezone_offered_when_supported(self) -> None:
        schema = input_schema(_make_endpoints()[2])
        assert "timezone" in schema["properties"]

    def test_list_tools(self) -> None:
        registry = ToolRegistry(_make_endpoints(), ToolMode())
        tools = registry.list_tools()
        assert [t["name"] for t in tools] == _names(registry)
        assert tools[1]["method"] == "POST"
        assert tools[1]["readOnlyHint"] is False


# ---------------------------------------------------------------------------
# Search tests
# ---------------------------------------------------------------------------


class TestSearch:
    @pytest.fixture
    def registry(self) -> ToolRegistry:
        return ToolRegistry(_make_endpoints(), ToolMode(org_mode=True))

    def test_query_matches_name_path_and_tip(self, registry: ToolRegistry) -> None:
        assert [r["name"] for r in registry.search(query="sendmail")] == ["send-mail"]
        assert [r["name"] for r in registry.search(query="RECEIVEDDATETIME")] == [
            "list-mail-messages"
        ]

    def test_category_filter(self, registry: ToolRegistry) -> None:
        assert [r["name"] for r in registry.search(category="calendar")] == [
            "list-calendar-events"
        ]
        assert [r["name"] for r in registry.search(category="users")] == ["list-users"]

    def test_unknown_category_does_not_filter(self, registry: ToolRegistry) -> None:
        assert len(registry.search(category="nope")) == 5

    def test_limit(self, registry: ToolRegistry) -> None:
        assert len(registry.search(limit=2)) == 2

    def test_result_fields(self, registry: ToolRegistry) -> None:
        result = registry.search(query="send-mail")[0]
        assert result == {
            "name": "send-mail",
            "method": "POST",
            "path": "/me/sendMail",
            "description": "POST /me/sendMail",
        }
