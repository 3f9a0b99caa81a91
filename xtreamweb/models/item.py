"""Pydantic models for structured catalog items and paginated reads."""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ItemType(str, Enum):
    """The two catalog kinds persisted in the items table."""

    VOD = "vod"
    SERIES = "series"

    @classmethod
    def parse(cls, value: "ItemType | str") -> "ItemType":
        """Coerce *value* to an :class:`ItemType` or raise ``ValueError``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Invalid or missing 'type' parameter {value!r}. Must be 'vod' or 'series'") from None


class ListKind(str, Enum):
    """Which upstream bulk listing a payload is, declared by the caller."""

    VOD_LIST = "vod_list"
    SERIES_LIST = "series_list"

    @property
    def item_type(self) -> ItemType:
        return ItemType.VOD if self is ListKind.VOD_LIST else ItemType.SERIES

    @property
    def action(self) -> str:
        return "get_vod_streams" if self is ListKind.VOD_LIST else "get_series"

    @classmethod
    def from_action(cls, action: str | None) -> Optional["ListKind"]:
        for kind in cls:
            if kind.action == action:
                return kind
        return None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Item(_CamelModel):
    """A VOD stream or series row. ``(id, type)`` is the identity."""

    id: str
    type: ItemType
    name: str = Field(min_length=1)
    poster_url: Optional[str] = None
    category_id: Optional[str] = None


class Pagination(_CamelModel):
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class ItemPage(_CamelModel):
    """Result shape shared by list and search reads."""

    items: list[Item] = Field(default_factory=list)
    count: int = 0
    total_count: int = 0
    pagination: Pagination


class TypeSyncResult(_CamelModel):
    fetched: int = 0
    stored: int = 0
    errors: list[str] = Field(default_factory=list)


class SyncResults(_CamelModel):
    vod: TypeSyncResult = Field(default_factory=TypeSyncResult)
    series: TypeSyncResult = Field(default_factory=TypeSyncResult)


class SyncResult(_CamelModel):
    success: bool
    message: str
    results: SyncResults
