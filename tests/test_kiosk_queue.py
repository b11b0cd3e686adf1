import asyncio

import pytest

from streamcast.services import kiosk_queue as kiosk_queue_module
from streamcast.services.kiosk_queue import KioskCommandQueue


class TestKioskCommandQueue:
    async def test_append_many_keeps_order_and_shares_timestamp(self):
        queue = KioskCommandQueue(ttl_seconds=60)

        queued = await queue.append_many("k1", [
            ("navigate", {"path": "iptv"}),
            ("iptv-play", {"channelId": "ch1"}),
        ])

        assert [command.type for command in queue.peek("k1")] == ["navigate", "iptv-play"]
        assert queued[0].timestamp == queued[1].timestamp
        assert queued[1].payload == {"channelId": "ch1"}

    async def test_unknown_command_type_rejects_whole_batch(self):
        queue = KioskCommandQueue(ttl_seconds=60)

        with pytest.raises(ValueError):
            await queue.append_many("k1", [("navigate", {"path": "iptv"}), ("self-destruct", None)])

        assert queue.peek("k1") == []

    async def test_concurrent_pairs_do_not_interleave(self):
        queue = KioskCommandQueue(ttl_seconds=60)

        await asyncio.gather(*(
            queue.append_many("k1", [("navigate", {"path": "iptv"}), ("iptv-play", {"channelId": f"ch{i}"})])
            for i in range(5)
        ))

        commands = queue.peek("k1")
        assert len(commands) == 10
        for navigate, play in zip(commands[::2], commands[1::2]):
            assert navigate.type == "navigate"
            assert play.type == "iptv-play"

    async def test_poll_filters_by_since_and_ttl(self, monkeypatch):
        now = [1_000_000]
        monkeypatch.setattr(kiosk_queue_module, "_now_ms", lambda: now[0])
        queue = KioskCommandQueue(ttl_seconds=60)

        await queue.append("k1", "refresh")
        now[0] += 30_000
        await queue.append("k1", "fullscreen")

        assert [c.type for c in queue.poll("k1")] == ["refresh", "fullscreen"]
        assert [c.type for c in queue.poll("k1", since=1_000_000)] == ["fullscreen"]

        now[0] += 45_000
        assert [c.type for c in queue.poll("k1")] == ["fullscreen"]

    async def test_purge_expired_drops_old_commands(self, monkeypatch):
        now = [1_000_000]
        monkeypatch.setattr(kiosk_queue_module, "_now_ms", lambda: now[0])
        queue = KioskCommandQueue(ttl_seconds=60)

        await queue.append("k1", "refresh")
        await queue.append("k2", "refresh")
        now[0] += 61_000
        await queue.append("k2", "screensaver")

        removed = await queue.purge_expired()

        assert removed == 2
        assert queue.peek("k1") == []
        assert [c.type for c in queue.peek("k2")] == ["screensaver"]

    async def test_drain_empties_queue(self):
        queue = KioskCommandQueue(ttl_seconds=60)
        await queue.append("k1", "reload-photos")

        drained = await queue.drain("k1")

        assert [c.type for c in drained] == ["reload-photos"]
        assert queue.peek("k1") == []

    async def test_purge_releases_emptied_queues(self, monkeypatch):
        now = [1_000_000]
        monkeypatch.setattr(kiosk_queue_module, "_now_ms", lambda: now[0])
        queue = KioskCommandQueue(ttl_seconds=60)

        await queue.append("k1", "refresh")
        now[0] += 61_000
        await queue.purge_expired()

        assert "k1" not in queue._commands
        assert len(queue._locks) == 0
