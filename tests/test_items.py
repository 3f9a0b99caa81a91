"""Tests for item extraction, batch storage and the paginated query engine."""

import math
import os

import pytest

from xtreamweb.database import DB_NAME, Database
from xtreamweb.models.item import Item, ItemType, ListKind
from xtreamweb.services.item_service import (
    ItemService,
    describe_dropped,
    extract_items,
    project_item,
)
from xtreamweb.services.query_service import QueryService, parse_paging_param


@pytest.fixture()
def db(tmp_path):
    database = Database(os.path.join(tmp_path, DB_NAME))
    database.init()
    yield database
    database.close()


@pytest.fixture()
def items(db):
    return ItemService(db)


@pytest.fixture()
def queries(db):
    return QueryService(db)


def _vod(item_id, name, category_id=None, poster=None):
    return Item(id=str(item_id), type=ItemType.VOD, name=name, category_id=category_id, poster_url=poster)


def _series(item_id, name, category_id=None):
    return Item(id=str(item_id), type=ItemType.SERIES, name=name, category_id=category_id)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

class TestProjection:

    def test_vod_stream(self):
        raw = {"stream_id": 42, "name": "Alien", "stream_icon": "http://img/a.jpg", "category_id": 10}
        item, reason = project_item(raw, ListKind.VOD_LIST)
        assert reason is None
        assert item == Item(id="42", type=ItemType.VOD, name="Alien",
                            poster_url="http://img/a.jpg", category_id="10")

    def test_series(self):
        raw = {"series_id": 7, "name": "Dark", "cover": "", "category_id": "3"}
        item, _ = project_item(raw, ListKind.SERIES_LIST)
        assert item.id == "7"
        assert item.type is ItemType.SERIES
        assert item.poster_url is None
        assert item.category_id == "3"

    def test_numeric_string_id_accepted(self):
        item, _ = project_item({"stream_id": "15", "name": "X"}, ListKind.VOD_LIST)
        assert item.id == "15"

    def test_missing_or_non_numeric_id_dropped(self):
        assert project_item({"name": "X"}, ListKind.VOD_LIST) == (None, "missing id")
        assert project_item({"stream_id": "abc", "name": "X"}, ListKind.VOD_LIST)[1] == "missing id"
        assert project_item({"stream_id": True, "name": "X"}, ListKind.VOD_LIST)[1] == "missing id"

    @pytest.mark.parametrize("bad_id", ["²", "١٢", "-5", -5, -1.0, "1.5", ""])
    def test_only_ascii_non_negative_ids_accepted(self, bad_id):
        assert project_item({"stream_id": bad_id, "name": "X"}, ListKind.VOD_LIST) == (None, "missing id")

    def test_integral_float_id_accepted(self):
        item, _ = project_item({"stream_id": 12.0, "name": "X"}, ListKind.VOD_LIST)
        assert item.id == "12"

    def test_missing_name_dropped(self):
        assert project_item({"stream_id": 1}, ListKind.VOD_LIST) == (None, "missing name")
        assert project_item({"stream_id": 1, "name": "  "}, ListKind.VOD_LIST)[1] == "missing name"

    def test_wrong_id_field_for_kind(self):
        # A VOD element declared as a series listing has no series_id
        assert project_item({"stream_id": 1, "name": "X"}, ListKind.SERIES_LIST)[1] == "missing id"

    def test_extract_skips_invalid(self):
        payload = [
            {"stream_id": 1, "name": "A"},
            {"stream_id": 2},
            "garbage",
            {"stream_id": 3, "name": "C"},
        ]
        found, dropped = extract_items(payload, ListKind.VOD_LIST)
        assert [i.id for i in found] == ["1", "3"]
        assert sum(dropped.values()) == 2

    def test_extract_non_list(self):
        assert extract_items({"user_info": {}}, ListKind.VOD_LIST)[0] == []

    def test_describe_dropped(self):
        _, dropped = extract_items([{"stream_id": 1}, {"stream_id": 2}, {"name": "x"}], ListKind.VOD_LIST)
        assert describe_dropped(dropped) == ["1 item missing id", "2 items missing name"]


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class TestItemStorage:

    def test_upsert_is_idempotent_and_last_write_wins(self, items, queries):
        items.upsert_items([_vod(1, "Old"), _vod(2, "Two")])
        items.upsert_items([_vod(1, "New", category_id="9"), _vod(2, "Two")])
        assert items.item_count(ItemType.VOD) == 2
        item = queries.get_by_id("1", ItemType.VOD)
        assert item.name == "New"
        assert item.category_id == "9"

    def test_same_id_different_type_are_distinct(self, items):
        items.upsert_items([_vod(1, "Movie"), _series(1, "Show")])
        assert items.item_count() == 2

    def test_empty_batch_writes_nothing(self, items):
        assert items.upsert_items([]) == 0
        assert items.item_count() == 0

    def test_extract_and_store(self, items):
        stored = items.extract_and_store(
            [{"series_id": 5, "name": "Lost"}, {"series_id": 6}], ListKind.SERIES_LIST
        )
        assert stored == 1
        assert items.item_count(ItemType.SERIES) == 1

    def test_extract_and_store_never_raises(self, db, items):
        db.close()
        assert items.extract_and_store([{"stream_id": 1, "name": "A"}], ListKind.VOD_LIST) == 0

    def test_replace_items_swaps_one_type(self, items):
        items.upsert_items([_vod(1, "A"), _vod(2, "B"), _series(3, "S")])
        assert items.replace_items("vod", [_vod(9, "Z")]) == 1
        assert items.item_count(ItemType.VOD) == 1
        assert items.item_count(ItemType.SERIES) == 1

    def test_replace_items_raises_on_storage_failure(self, db, items):
        db.close()
        with pytest.raises(RuntimeError):
            items.replace_items(ItemType.VOD, [_vod(1, "A")])

    def test_clear_items(self, items):
        items.upsert_items([_vod(1, "A"), _series(2, "B")])
        assert items.clear_items("series") == 1
        assert items.item_count() == 1
        assert items.clear_all_items() == 1
        assert items.item_count() == 0

    def test_unknown_type_rejected(self, items):
        with pytest.raises(ValueError):
            items.clear_items("live")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class TestListByType:

    def test_filter_by_category_sorted_by_name(self, items, queries):
        items.upsert_items([
            _vod(1, "Zodiac", category_id="10"),
            _vod(2, "Heat", category_id="20"),
            _vod(3, "Alien", category_id="10"),
        ])
        page = queries.list_by_type("vod", "10")
        assert [i.name for i in page.items] == ["Alien", "Zodiac"]
        assert page.total_count == 2
        assert page.count == 2

    def test_unpaginated(self, items, queries):
        items.upsert_items([_vod(i, f"Movie {i:02d}") for i in range(5)])
        page = queries.list_by_type(ItemType.VOD)
        assert page.count == 5
        assert page.pagination.total_pages == 1
        assert page.pagination.limit == 5
        assert page.pagination.has_next_page is False
        assert page.pagination.has_previous_page is False

    def test_pagination_metadata(self, items, queries):
        items.upsert_items([_vod(i, f"Movie {i:02d}") for i in range(7)])
        page = queries.list_by_type("vod", page=2, limit=3)
        assert [i.name for i in page.items] == ["Movie 03", "Movie 04", "Movie 05"]
        assert page.total_count == 7
        assert page.pagination.total_pages == 3
        assert page.pagination.has_next_page is True
        assert page.pagination.has_previous_page is True

        last = queries.list_by_type("vod", page=3, limit=3)
        assert last.count == 1
        assert last.pagination.has_next_page is False

    @pytest.mark.parametrize("n,limit", [(10, 3), (9, 3), (1, 5), (12, 1)])
    def test_pages_concatenate_to_full_listing(self, items, queries, n, limit):
        names = [f"Title {chr(65 + (i * 7) % 26)}{i}" for i in range(n)]
        items.upsert_items([_vod(i, name) for i, name in enumerate(names)])
        collected = []
        for p in range(1, math.ceil(n / limit) + 1):
            collected.extend(queries.list_by_type("vod", page=p, limit=limit).items)
        assert [i.name for i in collected] == sorted(names)
        assert len({i.id for i in collected}) == n

    def test_type_isolation(self, items, queries):
        items.upsert_items([_vod(1, "Movie"), _series(2, "Show")])
        assert [i.name for i in queries.list_by_type("series").items] == ["Show"]

    @pytest.mark.parametrize("page,limit", [(0, None), (-1, 10), (1, 0), (1, -5)])
    def test_invalid_paging_rejected(self, queries, page, limit):
        with pytest.raises(ValueError):
            queries.list_by_type("vod", page=page, limit=limit)

    def test_invalid_type_rejected(self, queries):
        with pytest.raises(ValueError):
            queries.list_by_type("live")

    def test_storage_failure_returns_empty(self, db, items, queries):
        items.upsert_items([_vod(1, "A")])
        db.close()
        page = queries.list_by_type("vod")
        assert page.items == []
        assert page.total_count == 0


class TestSearchByName:

    @pytest.fixture(autouse=True)
    def _seed(self, items):
        items.upsert_items([
            _vod(1, "The Matrix"),
            _vod(2, "Matrix Reloaded"),
            _vod(3, "Heat"),
            _series(4, "Matrix: The Series"),
            _series(5, "Élite"),
        ])

    @pytest.mark.parametrize("q", ["", "   ", None])
    def test_blank_query_returns_nothing(self, queries, q):
        page = queries.search_by_name(q)
        assert page.items == []
        assert page.total_count == 0

    def test_case_insensitive_across_types(self, queries):
        page = queries.search_by_name("MATRIX")
        assert [(i.type.value, i.name) for i in page.items] == [
            ("series", "Matrix: The Series"),
            ("vod", "Matrix Reloaded"),
            ("vod", "The Matrix"),
        ]
        assert page.total_count == 3

    def test_type_filter(self, queries):
        page = queries.search_by_name("matrix", "vod")
        assert [i.name for i in page.items] == ["Matrix Reloaded", "The Matrix"]

    def test_query_is_trimmed(self, queries):
        assert queries.search_by_name("  heat  ").total_count == 1

    def test_unicode_case_folding(self, queries):
        assert queries.search_by_name("élite").total_count == 1

    def test_like_wildcards_are_literal(self, queries):
        assert queries.search_by_name("%").total_count == 0
        assert queries.search_by_name("_").total_count == 0

    def test_paginated_search(self, queries):
        page = queries.search_by_name("matrix", page=2, limit=2)
        assert page.count == 1
        assert page.total_count == 3
        assert page.pagination.total_pages == 2
        assert page.pagination.has_previous_page is True

    def test_invalid_paging_rejected_before_blank_check(self, queries):
        with pytest.raises(ValueError):
            queries.search_by_name("", page=0)


class TestGetById:

    def test_found(self, items, queries):
        items.upsert_items([_vod(1, "A", poster="http://img/1.jpg")])
        item = queries.get_by_id("1", "vod")
        assert item.poster_url == "http://img/1.jpg"

    def test_absent_is_none(self, items, queries):
        items.upsert_items([_vod(1, "A")])
        assert queries.get_by_id("1", "series") is None
        assert queries.get_by_id("2", "vod") is None


class TestParsePagingParam:

    @pytest.mark.parametrize("raw,expected", [(None, None), ("", None), ("  ", None), ("3", 3), (" 12 ", 12), ("-1", -1)])
    def test_parsed(self, raw, expected):
        assert parse_paging_param("page", raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "1.5", "١٢", "1_0", "+"])
    def test_rejected(self, raw):
        with pytest.raises(ValueError, match="Invalid 'limit' parameter"):
            parse_paging_param("limit", raw)


def test_item_serialises_camel_case():
    data = _vod(1, "A", category_id="3").model_dump(by_alias=True, mode="json")
    assert data == {"id": "1", "type": "vod", "name": "A", "posterUrl": None, "categoryId": "3"}
