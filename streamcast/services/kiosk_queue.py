"""
Kiosk Command Queue

Per-kiosk ordered command lists. Kiosk clients poll them; commands expire
after a TTL so an offline kiosk does not replay stale actions.
"""
import logging
import time
from collections import defaultdict
from typing import Any, Sequence

from streamcast.config import settings
from streamcast.services.cast_types import KioskCommand
from streamcast.services.fetch_coordinator import KeyedLock


logger = logging.getLogger(__name__)

VALID_COMMAND_TYPES = frozenset({
    "refresh",
    "reload-photos",
    "navigate",
    "fullscreen",
    "multiview-add",
    "multiview-remove",
    "multiview-clear",
    "multiview-set",
    "screensaver",
    "widget-control",
    "iptv-play",
    "camera-view",
})


def _now_ms() -> int:
    return int(time.time() * 1000)


class KioskCommandQueue:
    """In-memory FIFO per kiosk, guarded by a per-kiosk lock"""

    def __init__(self, ttl_seconds: int | None = None):
        self._ttl_ms = (ttl_seconds or settings.kiosk_command_ttl_sec) * 1000
        self._commands: defaultdict[str, list[KioskCommand]] = defaultdict(list)
        self._locks = KeyedLock()

    async def append(self, kiosk_id: str, command_type: str, payload: dict[str, Any] | None = None) -> KioskCommand:
        commands = await self.append_many(kiosk_id, [(command_type, payload)])
        return commands[0]

    async def append_many(
        self,
        kiosk_id: str,
        commands: Sequence[tuple[str, dict[str, Any] | None]],
    ) -> list[KioskCommand]:
        """
        Append commands back-to-back; no other producer interleaves with them.

        Raises:
            ValueError: If a command type is unknown
        """
        for command_type, _ in commands:
            if command_type not in VALID_COMMAND_TYPES:
                raise ValueError(f"Unknown kiosk command type: {command_type}")

        async with self._locks(kiosk_id):
            timestamp = _now_ms()
            queued = [
                KioskCommand(kiosk_id=kiosk_id, type=command_type, payload=dict(payload or {}), timestamp=timestamp)
                for command_type, payload in commands
            ]
            self._commands[kiosk_id].extend(queued)

        logger.debug("Queued %s command(s) for kiosk %s", len(queued), kiosk_id)
        return queued

    def peek(self, kiosk_id: str) -> list[KioskCommand]:
        return list(self._commands.get(kiosk_id, ()))

    def poll(self, kiosk_id: str, since: int = 0) -> list[KioskCommand]:
        """Commands newer than ``since`` (epoch ms) that have not expired"""
        cutoff = _now_ms() - self._ttl_ms
        return [
            command for command in self._commands.get(kiosk_id, ())
            if command.timestamp > since and command.timestamp >= cutoff
        ]

    async def drain(self, kiosk_id: str) -> list[KioskCommand]:
        async with self._locks(kiosk_id):
            return self._commands.pop(kiosk_id, [])

    async def purge_expired(self) -> int:
        """Drop expired commands from every queue; returns how many were dropped"""
        cutoff = _now_ms() - self._ttl_ms
        removed = 0
        for kiosk_id in list(self._commands):
            async with self._locks(kiosk_id):
                commands = self._commands.get(kiosk_id, [])
                valid = [command for command in commands if command.timestamp >= cutoff]
                removed += len(commands) - len(valid)
                if valid:
                    self._commands[kiosk_id] = valid
                else:
                    self._commands.pop(kiosk_id, None)
        if removed:
            logger.info("Purged %s expired kiosk command(s)", removed)
        return removed
