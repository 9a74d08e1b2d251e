"""HTTP trigger blueprint — health check, tool listing and tool invocation endpoints."""

import json
import logging

import azure.functions as func

from graph_relay import __version__
from graph_relay.config import load_config
from graph_relay.tools.router import ToolRouter, tool_router_from_config

logger = logging.getLogger(__name__)

bp = func.Blueprint()

_router: ToolRouter | None = None


def get_router() -> ToolRouter:
    """Return the worker's router, building it from the environment on first use."""
    global _router
    if _router is None:
        _router = tool_router_from_config(load_config())
        logger.info(
            "[get_router] tool router initialised; tool_count:%d", len(_router.list_tools())
        )
    return _router


def _json_response(payload: object, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps(payload), status_code=status_code, mimetype="application/json"
    )


def _internal_error() -> func.HttpResponse:
    return _json_response({"status": "error", "message": "Internal server error"}, status_code=500)


@bp.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """Health check endpoint.

    Returns service status and version.
    """
    logger.info("[health_check] health check requested")

    try:
        return _json_response({"status": "ok", "version": __version__})

    except Exception:
        logger.error("[health_check] health check failed", exc_info=True)
        return _internal_error()


@bp.route(route="tools", methods=["GET"], auth_level=func.AuthLevel.FUNCTION)
def list_tools(req: func.HttpRequest) -> func.HttpResponse:
    """List the tools visible in the configured mode."""
    logger.info("[list_tools] tool listing requested")

    try:
        tools = get_router().list_tools()
        return _json_response({"tools": tools, "count": len(tools)})

    except Exception:
        logger.error("[list_tools] tool listing failed", exc_info=True)
        return _internal_error()


@bp.route(route="tools/{name}", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
async def invoke_tool(req: func.HttpRequest) -> func.HttpResponse:
    """Invoke one tool with the JSON request body as its parameter map.

    Tool-level failures are reported inside the result envelope with HTTP
    200; only a body that is not a JSON object is rejected with 400.
    """
    name = req.route_params.get("name", "")
    logger.info("[invoke_tool] tool invocation requested; tool:%s", name)

    try:
        raw_body = req.get_body()
        params = json.loads(raw_body) if raw_body else {}
    except ValueError:
        logger.warning("[invoke_tool] request body is not valid JSON; tool:%s", name)
        return _json_response(
            {"status": "error", "message": "Request body must be a JSON object"}, status_code=400
        )
    if not isinstance(params, dict):
        logger.warning("[invoke_tool] request body is not a JSON object; tool:%s", name)
        return _json_response(
            {"status": "error", "message": "Request body must be a JSON object"}, status_code=400
        )

    try:
        result = await get_router().invoke(name, params)
        return _json_response(result.to_dict())

    except Exception:
        logger.error("[invoke_tool] tool invocation failed; tool:%s", name, exc_info=True)
        return _internal_error()
