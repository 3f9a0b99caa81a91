"""Query service: paginated browse, name search and point lookup over items."""
from __future__ import annotations

import logging
import math
import re
from typing import TYPE_CHECKING, Optional

from xtreamweb.models.item import Item, ItemPage, ItemType, Pagination

if TYPE_CHECKING:
    from xtreamweb.database import Database

logger = logging.getLogger(__name__)

_COLUMNS = "id, type, name, poster_url, category_id"
_INT_RE = re.compile(r"-?[0-9]+")


def _check_positive(name: str, value: Optional[int]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"Invalid '{name}' parameter. Must be a positive number.")


def parse_paging_param(name: str, raw: Optional[str]) -> Optional[int]:
    """Parse a raw ``page`` / ``limit`` query value. Absent or blank is None."""
    if raw is None or not raw.strip():
        return None
    if not _INT_RE.fullmatch(raw.strip()):
        raise ValueError(f"Invalid '{name}' parameter. Must be a positive number.")
    return int(raw.strip())


def validate_paging(page: Optional[int], limit: Optional[int]) -> int:
    """Reject non-positive paging input and return the effective page."""
    _check_positive("page", page)
    _check_positive("limit", limit)
    return page or 1


def build_page(items: list[Item], total_count: int, page: int, limit: Optional[int]) -> ItemPage:
    """Wrap a slice of results with its pagination block.

    Without a *limit* the whole result set is one page.
    """
    if limit is None:
        pagination = Pagination(
            page=1,
            limit=total_count,
            total_pages=1,
            has_next_page=False,
            has_previous_page=False,
        )
    else:
        total_pages = math.ceil(total_count / limit)
        pagination = Pagination(
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )
    return ItemPage(items=items, count=len(items), total_count=total_count, pagination=pagination)


def _row_to_item(row) -> Item:
    return Item(
        id=row["id"],
        type=row["type"],
        name=row["name"],
        poster_url=row["poster_url"],
        category_id=row["category_id"],
    )


def _paginate(sql: str, params: list, page: int, limit: Optional[int]) -> tuple[str, list]:
    if limit is None:
        return sql, params
    return f"{sql} LIMIT ? OFFSET ?", [*params, limit, (page - 1) * limit]


class QueryService:
    """Read path over the ``items`` table.

    Input is validated before the store is touched; storage errors are
    logged and produce an empty result.
    """

    def __init__(self, db: "Database"):
        self.db = db

    def list_by_type(
        self,
        item_type: ItemType | str,
        category_id: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ItemPage:
        """Items of one type, optionally within a category, ordered by name."""
        item_type = ItemType.parse(item_type)
        page = validate_paging(page, limit)

        where = "WHERE type = ?"
        params: list = [item_type.value]
        if category_id:
            where += " AND category_id = ?"
            params.append(category_id)

        try:
            total_count = self.db.conn.execute(
                f"SELECT COUNT(*) FROM items {where}", params
            ).fetchone()[0]
            sql, sql_params = _paginate(
                f"SELECT {_COLUMNS} FROM items {where} ORDER BY name, id", params, page, limit
            )
            rows = self.db.conn.execute(sql, sql_params).fetchall()
            return build_page([_row_to_item(r) for r in rows], total_count, page, limit)
        except Exception as e:
            logger.error(f"Get items error: {e}")
            return build_page([], 0, page, limit)

    def search_by_name(
        self,
        query: str,
        item_type: ItemType | str | None = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ItemPage:
        """Case-insensitive substring search on ``name``.

        A blank query matches nothing. Results across both types are
        grouped by type, then ordered by name.
        """
        if item_type is not None:
            item_type = ItemType.parse(item_type)
        page = validate_paging(page, limit)

        term = (query or "").strip().casefold()
        if not term:
            return build_page([], 0, page, limit)

        where = "WHERE instr(py_lower(name), ?) > 0"
        params: list = [term]
        order = "ORDER BY type, name, id"
        if item_type is not None:
            where = "WHERE type = ? AND instr(py_lower(name), ?) > 0"
            params = [item_type.value, term]
            order = "ORDER BY name, id"

        try:
            total_count = self.db.conn.execute(
                f"SELECT COUNT(*) FROM items {where}", params
            ).fetchone()[0]
            sql, sql_params = _paginate(
                f"SELECT {_COLUMNS} FROM items {where} {order}", params, page, limit
            )
            rows = self.db.conn.execute(sql, sql_params).fetchall()
            return build_page([_row_to_item(r) for r in rows], total_count, page, limit)
        except Exception as e:
            logger.error(f"Search items error: {e}")
            return build_page([], 0, page, limit)

    def get_by_id(self, item_id: str, item_type: ItemType | str) -> Optional[Item]:
        item_type = ItemType.parse(item_type)
        try:
            row = self.db.conn.execute(
                f"SELECT {_COLUMNS} FROM items WHERE id = ? AND type = ?",
                (str(item_id), item_type.value),
            ).fetchone()
            return _row_to_item(row) if row else None
        except Exception as e:
            logger.error(f"Get item error: {e}")
            return None
