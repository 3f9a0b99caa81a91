"""Item service: projects upstream VOD/series listings into the items table."""
from __future__ import annotations

import logging
import re
from collections import Counter
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from xtreamweb.models.item import Item, ItemType, ListKind
from xtreamweb.services.cache_service import now_ms

if TYPE_CHECKING:
    from xtreamweb.database import Database

logger = logging.getLogger(__name__)

# (id field, poster field) per upstream listing
_LIST_FIELDS = {
    ListKind.VOD_LIST: ("stream_id", "stream_icon"),
    ListKind.SERIES_LIST: ("series_id", "cover"),
}

MISSING_ID = "missing id"
MISSING_NAME = "missing name"
NOT_AN_OBJECT = "not an object"

_DIGITS_RE = re.compile(r"[0-9]+")


def _numeric_id(value: Any) -> Optional[str]:
    """Return *value* as a string when it is an integer id, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value) if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return str(int(value))
    if isinstance(value, str) and _DIGITS_RE.fullmatch(value.strip()):
        return value.strip()
    return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def project_item(raw: Any, kind: ListKind) -> tuple[Optional[Item], Optional[str]]:
    """Project one upstream element into an :class:`Item`.

    Returns ``(item, None)`` on success or ``(None, reason)`` when the
    element lacks a numeric id or a name.
    """
    if not isinstance(raw, dict):
        return None, NOT_AN_OBJECT
    id_field, poster_field = _LIST_FIELDS[kind]
    item_id = _numeric_id(raw.get(id_field))
    if item_id is None:
        return None, MISSING_ID
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        return None, MISSING_NAME
    return Item(
        id=item_id,
        type=kind.item_type,
        name=name,
        poster_url=_optional_str(raw.get(poster_field)),
        category_id=_optional_str(raw.get("category_id")),
    ), None


def extract_items(payload: Any, kind: ListKind) -> tuple[list[Item], Counter]:
    """Project every element of a listing payload.

    Returns the valid items plus a counter of drop reasons.
    """
    dropped: Counter = Counter()
    if not isinstance(payload, list):
        return [], dropped
    items: list[Item] = []
    for raw in payload:
        item, reason = project_item(raw, kind)
        if item is None:
            dropped[reason] += 1
        else:
            items.append(item)
    return items, dropped


def describe_dropped(dropped: Counter) -> list[str]:
    """Render drop reasons as messages, e.g. ``"2 items missing name"``."""
    messages = []
    for reason, count in sorted(dropped.items()):
        noun = "item" if count == 1 else "items"
        messages.append(f"{count} {noun} {reason}")
    return messages


class ItemService:
    """Batch writes and maintenance on the structured ``items`` table."""

    def __init__(self, db: "Database", clock: Optional[Callable[[], int]] = None):
        self.db = db
        self._clock = clock or now_ms

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert(self, conn, items: Iterable[Item]) -> int:
        now = self._clock()
        rows = [
            (item.id, item.type.value, item.name, item.poster_url, item.category_id, now)
            for item in items
        ]
        conn.executemany(
            "INSERT OR REPLACE INTO items "
            "(id, type, name, poster_url, category_id, updated_at) "
            "VALUES (?,?,?,?,?,?)",
            rows,
        )
        return len(rows)

    def upsert_items(self, items: list[Item]) -> int:
        """Upsert *items* in one transaction. Raises on storage failure."""
        if not items:
            return 0
        with self.db.transaction() as conn:
            return self._insert(conn, items)

    def store_items(self, items: list[Item]) -> int:
        """Best-effort :meth:`upsert_items`; failures are logged, never raised."""
        try:
            return self.upsert_items(items)
        except Exception as e:
            logger.error(f"Store items error: {e}")
            return 0

    def replace_items(self, item_type: ItemType | str, items: list[Item]) -> int:
        """Swap every row of *item_type* for *items* in a single transaction.

        Raises on storage failure so the caller can report it.
        """
        item_type = ItemType.parse(item_type)
        with self.db.transaction() as conn:
            removed = conn.execute("DELETE FROM items WHERE type = ?", (item_type.value,)).rowcount
            stored = self._insert(conn, items)
        logger.info(f"Replaced {removed} {item_type.value} items with {stored}")
        return stored

    def extract_and_store(self, payload: Any, kind: ListKind) -> int:
        """Opportunistically persist items from a listing the caller just fetched.

        Invalid elements are skipped. Never raises: the response that
        triggered extraction must not be held up by it.
        """
        try:
            items, dropped = extract_items(payload, kind)
            if dropped:
                logger.debug(f"Skipped {sum(dropped.values())} invalid {kind.item_type.value} entries")
            return self.store_items(items)
        except Exception as e:
            logger.error(f"Failed to extract items from {kind.value} response: {e}")
            return 0

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_items(self, item_type: ItemType | str) -> int:
        item_type = ItemType.parse(item_type)
        try:
            with self.db.transaction() as conn:
                return conn.execute("DELETE FROM items WHERE type = ?", (item_type.value,)).rowcount
        except Exception as e:
            logger.error(f"Clear items error: {e}")
            return 0

    def clear_all_items(self) -> int:
        try:
            with self.db.transaction() as conn:
                return conn.execute("DELETE FROM items").rowcount
        except Exception as e:
            logger.error(f"Clear all items error: {e}")
            return 0

    def item_count(self, item_type: ItemType | str | None = None) -> int:
        if item_type is not None:
            item_type = ItemType.parse(item_type)
        try:
            if item_type is None:
                row = self.db.conn.execute("SELECT COUNT(*) FROM items").fetchone()
            else:
                row = self.db.conn.execute(
                    "SELECT COUNT(*) FROM items WHERE type = ?", (item_type.value,)
                ).fetchone()
            return row[0]
        except Exception as e:
            logger.error(f"Item count error: {e}")
            return 0
