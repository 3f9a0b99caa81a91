"""Sync service: full resync of the VOD and series catalogs into the items table."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from xtreamweb.models.item import ListKind, SyncResult, SyncResults, TypeSyncResult
from xtreamweb.services.item_service import describe_dropped, extract_items

if TYPE_CHECKING:
    from xtreamweb.models.config import XtreamConfig
    from xtreamweb.services.item_service import ItemService
    from xtreamweb.services.xtream_service import XtreamService

logger = logging.getLogger(__name__)

_LABELS = {ListKind.VOD_LIST: "VOD streams", ListKind.SERIES_LIST: "series"}


class SyncService:
    """User-triggered clear-then-repopulate of both item types.

    Unlike opportunistic extraction, every failure is collected into the
    per-type ``errors`` list and handed back to the caller.
    """

    def __init__(self, xtream_service: "XtreamService", item_service: "ItemService"):
        self.xtream_service = xtream_service
        self.item_service = item_service

    async def _fetch(self, config: "XtreamConfig", kind: ListKind):
        if kind is ListKind.VOD_LIST:
            return await self.xtream_service.get_vod_streams(config, force_refresh=True, extract=False)
        return await self.xtream_service.get_series(config, force_refresh=True, extract=False)

    async def _sync_kind(self, config: "XtreamConfig", kind: ListKind) -> TypeSyncResult:
        result = TypeSyncResult()
        label = _LABELS[kind]

        try:
            payload = await self._fetch(config, kind)
        except httpx.HTTPStatusError as e:
            result.errors.append(f"Failed to fetch {label}: HTTP {e.response.status_code}")
            return result
        except (httpx.HTTPError, ValueError) as e:
            result.errors.append(f"Failed to fetch {label}: {e}")
            return result

        if not isinstance(payload, list):
            result.errors.append(f"Unexpected {label} response: expected a list")
            return result

        result.fetched = len(payload)
        items, dropped = extract_items(payload, kind)
        result.errors.extend(describe_dropped(dropped))

        # Existing rows stay until there is something to replace them with
        if not items:
            result.errors.append(f"No valid {label} to store")
            return result

        try:
            result.stored = self.item_service.replace_items(kind.item_type, items)
        except Exception as e:
            logger.error(f"Failed to store {label}: {e}")
            result.errors.append(f"Failed to store {label}: {e}")
        return result

    async def sync_all(self, config: "XtreamConfig") -> SyncResult:
        results = SyncResults(
            vod=await self._sync_kind(config, ListKind.VOD_LIST),
            series=await self._sync_kind(config, ListKind.SERIES_LIST),
        )
        success = results.vod.stored > 0 or results.series.stored > 0
        if success:
            message = (
                f"Synced {results.vod.stored} VOD streams and "
                f"{results.series.stored} series to database"
            )
        else:
            message = "No content was synced"
        logger.info(
            f"Sync finished: vod {results.vod.stored}/{results.vod.fetched}, "
            f"series {results.series.stored}/{results.series.fetched}"
        )
        return SyncResult(success=success, message=message, results=results)

    @staticmethod
    def has_errors(result: SyncResult) -> bool:
        return bool(result.results.vod.errors or result.results.series.errors)
