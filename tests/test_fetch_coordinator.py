import asyncio

from streamcast.services.fetch_coordinator import FetchCoordinator


class TestFetchCoordinator:
    async def test_concurrent_calls_share_one_fetch(self):
        coordinator: FetchCoordinator[str] = FetchCoordinator()
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "done"

        results = await asyncio.gather(*(coordinator.execute("u1", fetch) for _ in range(3)))

        assert results == ["done", "done", "done"]
        assert calls == 1
        assert not coordinator.is_fetching("u1")

    async def test_different_keys_fetch_independently(self):
        coordinator: FetchCoordinator[str] = FetchCoordinator()
        seen = []

        async def fetch_for(key):
            seen.append(key)
            await asyncio.sleep(0)
            return key

        results = await asyncio.gather(
            coordinator.execute("u1", lambda: fetch_for("u1")),
            coordinator.execute("u2", lambda: fetch_for("u2")),
        )

        assert results == ["u1", "u2"]
        assert sorted(seen) == ["u1", "u2"]

    async def test_failure_reaches_every_waiter_and_releases_key(self):
        coordinator: FetchCoordinator[str] = FetchCoordinator()

        async def fetch():
            await asyncio.sleep(0.01)
            raise RuntimeError("provider down")

        results = await asyncio.gather(
            coordinator.execute("u1", fetch),
            coordinator.execute("u1", fetch),
            return_exceptions=True,
        )

        assert all(isinstance(result, RuntimeError) for result in results)
        assert not coordinator.is_fetching("u1")

        async def ok():
            return "recovered"

        assert await coordinator.execute("u1", ok) == "recovered"

    async def test_is_fetching_while_in_flight(self):
        coordinator: FetchCoordinator[str] = FetchCoordinator()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return "done"

        pending = asyncio.create_task(coordinator.execute("u1", fetch))
        await asyncio.sleep(0)
        assert coordinator.is_fetching("u1")

        release.set()
        assert await pending == "done"
        assert not coordinator.is_fetching("u1")
