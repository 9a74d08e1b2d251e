"""Integration tests for Microsoft Graph API connectivity.

These tests require real Azure credentials and are skipped in CI/CD unless
the GR_CLIENT_ID environment variable is set.
"""

import json
import os

import pytest

pytestmark = pytest.mark.skipif(
    not os.getenv("GR_CLIENT_ID"),
    reason="Real Graph credentials not available",
)


@pytest.mark.asyncio
async def test_search_tools_real() -> None:
    """Build the router from the environment and run a discovery search."""
    from graph_relay.config import load_config
    from graph_relay.tools.router import tool_router_from_config

    router = tool_router_from_config(load_config())
    try:
        result = router.search_tools({"query": "user"})
    finally:
        await router.graph_client.close()

    assert json.loads(result.text)["found"] >= 0


@pytest.mark.asyncio
async def test_list_users_real() -> None:
    """Call Graph with application credentials and decode a user page.

    Requires an app registration granted User.Read.All and GR_ORG_MODE=true.
    """
    from graph_relay.config import load_config
    from graph_relay.tools.router import tool_router_from_config

    config = load_config()
    if not config.org_mode:
        pytest.skip("GR_ORG_MODE is not enabled")

    router = tool_router_from_config(config)
    try:
        result = await router.invoke("list-users", {"top": 1})
    finally:
        await router.graph_client.close()

    assert result.is_error is False, result.text
    assert "value" in json.loads(result.text)
