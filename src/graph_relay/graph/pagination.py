"""Aggregation of paged Graph collections by following @odata.nextLink."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import parse_qsl, urlparse

import httpx

from graph_relay.graph.client import GraphApiError, GraphClient
from graph_relay.graph.models import ODATA_COUNT, ODATA_NEXT_LINK, ODATA_VALUE, RequestShape

logger = logging.getLogger(__name__)

MAX_PAGES = 100
API_VERSION_PREFIX = "/v1.0"


def next_link_request(next_link: str, template: RequestShape) -> RequestShape:
    """Build the request for a continuation cursor.

    The cursor's own query string replaces the original query; method and
    headers are carried over from the first request.

    Args:
        next_link: Absolute @odata.nextLink URL.
        template: Request that produced the first page.

    Returns:
        RequestShape targeting the next page.

    Raises:
        ValueError: If the cursor is not an absolute URL.
    """
    parsed = urlparse(next_link)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Invalid @odata.nextLink: {next_link}")
    path = parsed.path
    if path.startswith(API_VERSION_PREFIX):
        path = path[len(API_VERSION_PREFIX) :]
    return RequestShape(
        method=template.method,
        path=path,
        query=dict(parse_qsl(parsed.query, keep_blank_values=True)),
        headers=dict(template.headers),
        body=template.body,
    )


def _decode_page(content: bytes) -> dict[str, Any] | None:
    try:
        data = json.loads(content)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


async def fetch_all_pages(
    client: GraphClient,
    first_page: dict[str, Any],
    template: RequestShape,
    max_pages: int = MAX_PAGES,
) -> dict[str, Any]:
    """Merge every page of a collection into the first page.

    Follows @odata.nextLink until it is absent, a page request fails, a page
    cannot be decoded, or max_pages pages have been fetched. Stopping early
    is logged and the partial aggregate is returned.

    Args:
        client: GraphClient used to fetch subsequent pages.
        first_page: Decoded body of the first response.
        template: Request that produced the first page.
        max_pages: Ceiling on the number of pages, including the first.

    Returns:
        The first page with "value" replaced by all items, the cursor removed,
        and "@odata.count" rewritten to the merged item count when present.
    """
    items: list[Any] = list(first_page.get(ODATA_VALUE) or [])
    next_link = first_page.get(ODATA_NEXT_LINK)
    page_count = 1

    while next_link and page_count < max_pages:
        logger.info("[fetch_all_pages] fetching page; page:%d", page_count + 1)
        try:
            request = next_link_request(str(next_link), template)
        except ValueError:
            logger.warning("[fetch_all_pages] invalid nextLink, stopping; link:%s", next_link)
            break

        try:
            response = await client.request(request)
        except (GraphApiError, httpx.TransportError) as exc:
            logger.warning(
                "[fetch_all_pages] page request failed, returning partial result; page:%d;error:%s",
                page_count + 1,
                exc,
            )
            break
        page = _decode_page(response.content)
        if page is None:
            logger.warning("[fetch_all_pages] page is not a JSON object, stopping")
            break

        page_items = page.get(ODATA_VALUE)
        if isinstance(page_items, list):
            items.extend(page_items)
        next_link = page.get(ODATA_NEXT_LINK)
        page_count += 1

    if next_link and page_count >= max_pages:
        logger.warning("[fetch_all_pages] reached maximum page limit; max_pages:%d", max_pages)

    merged = dict(first_page)
    merged[ODATA_VALUE] = items
    merged.pop(ODATA_NEXT_LINK, None)
    if ODATA_COUNT in merged:
        merged[ODATA_COUNT] = len(items)

    logger.info(
        "[fetch_all_pages] pagination complete; item_count:%d;page_count:%d",
        len(items),
        page_count,
    )
    return merged
