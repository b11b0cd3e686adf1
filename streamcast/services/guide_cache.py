"""
Guide Cache

Caches each user's live-TV guide (channels, categories and EPG) as an
immutable snapshot that is rebuilt from the providers and swapped in whole.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from time import perf_counter
from types import MappingProxyType
from typing import Callable
from uuid import NAMESPACE_URL, uuid5

from streamcast.clients.xtream_codes import XtreamCodesClient
from streamcast.config import settings
from streamcast.exceptions import StreamCastError
from streamcast.models import IptvServer
from streamcast.services.cast_types import (
    EpgEntry,
    GuideCategory,
    GuideChannel,
    GuideSnapshot,
    GuideView,
)
from streamcast.services.db_service import OwnershipStore
from streamcast.services.fetch_coordinator import FetchCoordinator
from streamcast.utils.data_merging import count_channels_per_category, normalize_epg_entries
from streamcast.utils.logging_helpers import (
    log_refresh_end,
    log_refresh_start,
    log_server_processing,
)
from streamcast.utils.timezone import DateFormatError, from_unix_timestamp, utcnow


logger = logging.getLogger(__name__)

ClientFactory = Callable[[IptvServer], XtreamCodesClient]

_EMPTY_SNAPSHOT = GuideSnapshot()


def _local_id(id_map: dict[str, str], kind: str, server_id: str, external_id: str) -> str:
    """Stored id when the store knows the row, else a stable id derived from it"""
    return id_map.get(external_id) or str(uuid5(NAMESPACE_URL, f"{kind}:{server_id}:{external_id}"))


@dataclass(slots=True)
class ServerSummary:
    index: int
    server_id: str
    name: str
    channels: list[GuideChannel] = field(default_factory=list)
    categories: list[GuideCategory] = field(default_factory=list)
    epg: dict[str, tuple[EpgEntry, ...]] = field(default_factory=dict)
    epg_attempts: int = 0
    epg_failures: int = 0


class GuideCache:
    """
    Per-user guide snapshots with coalesced refreshes.

    get() never performs I/O. refresh() builds a complete snapshot before
    publishing it, so a failed refresh leaves the previous snapshot in place.
    """

    def __init__(
        self,
        store: OwnershipStore,
        *,
        client_factory: ClientFactory | None = None,
        freshness_window: timedelta | None = None,
        epg_limit: int | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self._store = store
        self._client_factory = client_factory or XtreamCodesClient.from_server
        self.freshness_window = freshness_window or timedelta(hours=settings.guide_freshness_hours)
        self._epg_limit = epg_limit or settings.epg_entries_per_channel
        self._concurrency = max(1, max_concurrency or settings.epg_fetch_concurrency)
        self._snapshots: dict[str, GuideSnapshot] = {}
        self._coordinator: FetchCoordinator[GuideSnapshot] = FetchCoordinator()

    def get(self, user_id: str) -> GuideView:
        snapshot = self._snapshots.get(user_id)
        if snapshot is None:
            return GuideView(snapshot=_EMPTY_SNAPSHOT, cached=False, last_updated=None)
        return GuideView(snapshot=snapshot, cached=True, last_updated=snapshot.fetched_at)

    def is_stale(self, user_id: str, now: datetime | None = None) -> bool:
        snapshot = self._snapshots.get(user_id)
        if snapshot is None or snapshot.fetched_at is None:
            return True
        return (now or utcnow()) - snapshot.fetched_at >= self.freshness_window

    def find_channel(self, user_id: str, channel_id: str) -> GuideChannel | None:
        return self.get(user_id).snapshot.channel(channel_id)

    def epg_for_channel(self, user_id: str, channel_id: str) -> tuple[EpgEntry, ...]:
        return self.get(user_id).snapshot.epg_by_channel.get(channel_id, ())

    def clear(self, user_id: str) -> None:
        self._snapshots.pop(user_id, None)

    def stats(self) -> dict:
        total_channels = 0
        total_epg_entries = 0
        for snapshot in self._snapshots.values():
            total_channels += len(snapshot.channels)
            total_epg_entries += sum(len(entries) for entries in snapshot.epg_by_channel.values())
        return {
            "user_count": len(self._snapshots),
            "total_channels": total_channels,
            "total_epg_entries": total_epg_entries,
        }

    def is_refreshing(self, user_id: str) -> bool:
        return self._coordinator.is_fetching(user_id)

    async def refresh(self, user_id: str) -> GuideSnapshot:
        """
        Rebuild the user's snapshot from the providers.

        Concurrent calls for the same user share one in-flight refresh.

        Raises:
            UnavailableError: If a provider is unreachable or failing
            UnauthorizedError: If a provider rejects or lacks credentials
        """
        return await self._coordinator.execute(user_id, lambda: self._refresh(user_id))

    async def refresh_stale(self) -> dict:
        """Refresh every user whose snapshot is missing or stale; errors are logged per user"""
        user_ids = await self._store.list_user_ids_with_servers()
        logger.info("Guide staleness sweep: %s user(s) with servers", len(user_ids))

        refreshed, failed, fresh = 0, 0, 0
        for user_id in user_ids:
            if not self.is_stale(user_id):
                fresh += 1
                continue
            try:
                await self.refresh(user_id)
                refreshed += 1
            except StreamCastError as exc:
                failed += 1
                logger.error("Guide refresh failed for user %s: %s", user_id, exc.message)

        logger.info(
            "Guide staleness sweep complete: %s refreshed, %s failed, %s fresh",
            refreshed,
            failed,
            fresh,
        )
        return {"refreshed": refreshed, "failed": failed, "fresh": fresh}

    async def _refresh(self, user_id: str) -> GuideSnapshot:
        started = perf_counter()
        servers = await self._store.list_servers(user_id)
        log_refresh_start(logger, user_id, len(servers))

        try:
            summaries = [
                await self._collect_server(index, len(servers), server)
                for index, server in enumerate(servers, start=1)
            ]
        except StreamCastError as exc:
            logger.error(
                "Guide refresh failed for user %s, keeping previous snapshot: %s",
                user_id,
                exc.message,
            )
            raise

        snapshot = self._build_snapshot(summaries)
        self._snapshots[user_id] = snapshot

        log_refresh_end(
            logger,
            user_id,
            len(snapshot.channels),
            len(snapshot.epg_by_channel),
            perf_counter() - started,
        )
        return snapshot

    async def _collect_server(self, index: int, total: int, server: IptvServer) -> ServerSummary:
        log_server_processing(logger, index, total, server.name, server.server_url)
        client = self._client_factory(server)

        raw_categories = await client.get_live_categories()
        raw_streams = await client.get_live_streams()

        category_ids = await self._store.get_category_id_map(server.id)
        channel_ids = await self._store.get_channel_id_map(server.id)

        summary = ServerSummary(index=index, server_id=server.id, name=server.name)
        category_by_external: dict[str, GuideCategory] = {}
        for raw in raw_categories:
            external_id = str(raw.get("category_id", ""))
            if not external_id:
                continue
            category = GuideCategory(
                id=_local_id(category_ids, "category", server.id, external_id),
                server_id=server.id,
                external_id=external_id,
                name=raw.get("category_name") or external_id,
            )
            category_by_external[external_id] = category
            summary.categories.append(category)

        for raw in raw_streams:
            external_id = str(raw.get("stream_id", ""))
            if not external_id:
                logger.debug("[Server %s] Skipping stream without stream_id", index)
                continue
            category = category_by_external.get(str(raw.get("category_id", "")))
            summary.channels.append(GuideChannel(
                id=_local_id(channel_ids, "channel", server.id, external_id),
                server_id=server.id,
                external_id=external_id,
                name=raw.get("name") or external_id,
                category_id=category.id if category else None,
                category_name=category.name if category else None,
                logo_url=raw.get("stream_icon") or None,
                epg_channel_id=raw.get("epg_channel_id") or None,
            ))

        await self._collect_epg(client, summary)
        logger.info(
            "[Server %s/%s] %s channels, %s categories, EPG %s/%s channels (%s failed)",
            index,
            total,
            len(summary.channels),
            len(summary.categories),
            len(summary.epg),
            summary.epg_attempts,
            summary.epg_failures,
        )
        return summary

    async def _collect_epg(self, client: XtreamCodesClient, summary: ServerSummary) -> None:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def fetch(channel: GuideChannel) -> tuple[str, tuple[EpgEntry, ...]]:
            async with semaphore:
                summary.epg_attempts += 1
                try:
                    listings = await client.get_short_epg(channel.external_id, self._epg_limit)
                except StreamCastError as exc:
                    summary.epg_failures += 1
                    if summary.epg_failures <= 3:
                        logger.warning(
                            "[Server %s] EPG fetch failed for %s: %s",
                            summary.index,
                            channel.name,
                            exc.message,
                        )
                    return channel.id, ()
            return channel.id, normalize_epg_entries(self._to_entries(channel, listings))

        results = await asyncio.gather(*(fetch(channel) for channel in summary.channels))
        for channel_id, entries in results:
            if entries:
                summary.epg[channel_id] = entries

    @staticmethod
    def _to_entries(channel: GuideChannel, listings: list[dict]) -> list[EpgEntry]:
        entries = []
        for listing in listings:
            try:
                start_time = from_unix_timestamp(listing.get("start_timestamp"))
                end_time = from_unix_timestamp(listing.get("stop_timestamp"))
            except DateFormatError:
                logger.debug("Skipping EPG listing with bad timestamps on %s", channel.name)
                continue
            entries.append(EpgEntry(
                channel_id=channel.id,
                title=listing.get("title") or "",
                description=listing.get("description") or None,
                start_time=start_time,
                end_time=end_time,
            ))
        return entries

    @staticmethod
    def _build_snapshot(summaries: list[ServerSummary]) -> GuideSnapshot:
        channels = [channel for summary in summaries for channel in summary.channels]
        categories = [category for summary in summaries for category in summary.categories]
        epg: dict[str, tuple[EpgEntry, ...]] = {}
        for summary in summaries:
            epg.update(summary.epg)
        return GuideSnapshot(
            channels=tuple(channels),
            categories=count_channels_per_category(categories, channels),
            epg_by_channel=MappingProxyType(epg),
            fetched_at=utcnow(),
        )
