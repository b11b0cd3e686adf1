"""
Data merging utilities

Helpers that turn raw provider listings into consistent guide data.
"""
from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from streamcast.services.cast_types import EpgEntry, GuideCategory, GuideChannel

logger = logging.getLogger(__name__)


def normalize_epg_entries(entries: Iterable[EpgEntry]) -> tuple[EpgEntry, ...]:
    """
    Order a channel's EPG entries by start time and drop unusable slots.

    Entries with an empty interval are skipped, as are entries that start
    before the previously kept entry ends, so the result is non-overlapping.

    Args:
        entries: EPG entries for a single channel, in any order

    Returns:
        Time-ordered, non-overlapping entries
    """
    kept: list[EpgEntry] = []
    for entry in sorted(entries, key=lambda e: (e.start_time, e.end_time)):
        if entry.end_time <= entry.start_time:
            logger.debug("Skipping empty EPG slot: %s on %s", entry.title, entry.channel_id)
            continue
        if kept and entry.start_time < kept[-1].end_time:
            logger.debug(
                "Skipping overlapping EPG slot: %s on %s",
                entry.title,
                entry.channel_id,
            )
            continue
        kept.append(entry)
    return tuple(kept)


def count_channels_per_category(
    categories: Sequence[GuideCategory],
    channels: Sequence[GuideChannel],
) -> tuple[GuideCategory, ...]:
    """Return categories with channel_count derived from the channel list"""
    counts = Counter(channel.category_id for channel in channels if channel.category_id)
    return tuple(replace(category, channel_count=counts.get(category.id, 0)) for category in categories)
