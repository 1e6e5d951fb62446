"""Pagination utility for MCP list operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from docbridge.mcp.protocol.client import MCPClient

logger = logging.getLogger(__name__)


class PaginationError(Exception):
    """The server returned a page we cannot use."""

    pass


@dataclass
class PaginatedResult:
    """One page of a list operation."""

    items: list[dict[str, Any]] = field(default_factory=list)
    next_cursor: str | None = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_cursor)


class PaginatedListHelper:
    """
    Helper for cursor-based pagination of MCP list operations.

    MCP uses cursor-based pagination for tools/list, resources/list,
    resources/templates/list and prompts/list. Cursors are opaque strings
    that clients must not parse or modify.
    """

    def __init__(self, client: "MCPClient", max_pages: int = 100) -> None:
        """
        Args:
            client: The MCP client to use for requests.
            max_pages: Safety limit on pages fetched per listing.
        """
        self.client = client
        self.max_pages = max_pages

    async def list_page(
        self,
        method: str,
        items_key: str,
        cursor: str | None = None,
    ) -> PaginatedResult:
        """
        Fetch a single page of results.

        Errors from the channel or the server propagate unchanged.

        Raises:
            PaginationError: If the page is not shaped like a list result.
        """
        params: dict[str, Any] | None = None
        if cursor:
            params = {"cursor": cursor}

        logger.debug(f"Fetching page: method={method}, cursor={cursor}")
        result = await self.client.request(method, params)

        if not isinstance(result, dict):
            raise PaginationError(f"{method} returned {type(result).__name__}, expected object")
        items = result.get(items_key) or []
        if not isinstance(items, list):
            raise PaginationError(f"{method} returned non-list '{items_key}'")

        return PaginatedResult(items=items, next_cursor=result.get("nextCursor"))

    async def list_all(self, method: str, items_key: str) -> list[dict[str, Any]]:
        """Fetch every page and concatenate the items."""
        all_items: list[dict[str, Any]] = []
        cursor: str | None = None

        for page_num in range(self.max_pages):
            page = await self.list_page(method, items_key, cursor)
            all_items.extend(page.items)

            if not page.has_more:
                logger.debug(f"Fetched {len(all_items)} {items_key} in {page_num + 1} pages")
                return all_items

            cursor = page.next_cursor

        logger.warning(
            f"Reached max_pages limit ({self.max_pages}) for {method}, "
            f"there may be more results"
        )
        return all_items

