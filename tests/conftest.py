"""
Shared fixtures: an in-memory store seeded with two users, and fake
live-TV provider, transcoding gateway and hub servers behind httpx.MockTransport.
"""
import asyncio
import base64
import json
from collections import Counter

import httpx
import pytest

from streamcast.clients.home_assistant import HomeAssistantClient
from streamcast.clients.mediamtx import MediaMTXClient
from streamcast.clients.xtream_codes import XtreamCodesClient
from streamcast.database import create_engine, create_schema, create_session_factory
from streamcast.dependencies import build_services
from streamcast.models import (
    Camera,
    HomeAssistantConfig,
    IptvCategory,
    IptvChannel,
    IptvServer,
    Kiosk,
)
from streamcast.services.db_service import OwnershipStore


USER = "u1"
OTHER_USER = "u2"
NO_CREDS_USER = "u3"

PROVIDER_URL = "http://provider.test"
HUB_URL = "http://hub.test"
HUB_TOKEN = "hub-token"
GATEWAY_URL = "http://gateway.test"

MEDIA_PLAYER = "media_player.living_room"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class FakeProvider:
    """Xtream-Codes style player_api.php"""

    def __init__(self):
        self.categories = [{"category_id": "5", "category_name": "News"}]
        self.streams = [
            {
                "stream_id": 101,
                "name": "News One",
                "category_id": "5",
                "stream_icon": "http://logos.test/101.png",
                "epg_channel_id": "newsone.us",
            },
            {"stream_id": 102, "name": "Sports Two", "category_id": "5"},
        ]
        self.epg = {
            "101": [
                {"title": _b64("Evening Talk"), "start_timestamp": "1700003600", "stop_timestamp": "1700007200"},
                {"title": _b64("Morning News"), "description": _b64("Headlines"),
                 "start_timestamp": "1700000000", "stop_timestamp": "1700003600"},
                {"title": _b64("Overlap"), "start_timestamp": "1700001800", "stop_timestamp": "1700005400"},
                {"title": _b64("Empty"), "start_timestamp": "1700007200", "stop_timestamp": "1700007200"},
            ],
        }
        self.fail_status: int | None = None
        self.epg_fail: set[str] = set()
        self.delay = 0.0
        self.calls: Counter = Counter()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        action = params.get("action")
        self.calls[action] += 1
        if self.delay:
            await asyncio.sleep(self.delay)

        if params.get("username") != "u" or params.get("password") != "p":
            return httpx.Response(401, json={"user_info": {"auth": 0}})

        if action in ("get_live_categories", "get_live_streams") and self.fail_status:
            return httpx.Response(self.fail_status, text="provider error")
        if action == "get_live_categories":
            return httpx.Response(200, json=self.categories)
        if action == "get_live_streams":
            return httpx.Response(200, json=self.streams)
        if action == "get_short_epg":
            stream_id = params.get("stream_id")
            if stream_id in self.epg_fail:
                return httpx.Response(500, text="epg error")
            return httpx.Response(200, json={"epg_listings": [dict(item) for item in self.epg.get(stream_id, [])]})
        return httpx.Response(400)

    def client_factory(self, server: IptvServer) -> XtreamCodesClient:
        return XtreamCodesClient.from_server(
            server,
            transport=httpx.MockTransport(self.handler),
            max_retries=1,
        )


class FakeGateway:
    """MediaMTX v3 API holding path configs and runtime path states"""

    def __init__(self):
        self.configs: dict[str, dict] = {}
        self.runtime: dict[str, dict] = {}
        self.requests: list[tuple[str, str]] = []
        self.down = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        self.requests.append((request.method, path))

        if path == "/v3/config/global/get":
            return httpx.Response(200, json={"api": True})
        if path.startswith("/v3/paths/get/"):
            state = self.runtime.get(path.removeprefix("/v3/paths/get/"))
            return httpx.Response(200, json=state) if state else httpx.Response(404, json={"error": "path not found"})

        if path.startswith("/v3/config/paths/get/"):
            config = self.configs.get(path.removeprefix("/v3/config/paths/get/"))
            return httpx.Response(200, json=config) if config else httpx.Response(404, json={"error": "path not found"})
        if path.startswith("/v3/config/paths/add/"):
            name = path.removeprefix("/v3/config/paths/add/")
            if name in self.configs:
                return httpx.Response(400, json={"error": "path already exists"})
            self.configs[name] = {"name": name, **json.loads(request.content)}
            return httpx.Response(200)
        if path.startswith("/v3/config/paths/patch/"):
            name = path.removeprefix("/v3/config/paths/patch/")
            if name not in self.configs:
                return httpx.Response(404, json={"error": "path not found"})
            self.configs[name].update(json.loads(request.content))
            return httpx.Response(200)
        if path.startswith("/v3/config/paths/delete/"):
            name = path.removeprefix("/v3/config/paths/delete/")
            if self.configs.pop(name, None) is None:
                return httpx.Response(404, json={"error": "path not found"})
            return httpx.Response(200)
        return httpx.Response(404)

    def count(self, method: str, prefix: str) -> int:
        return sum(1 for m, p in self.requests if m == method and p.startswith(prefix))

    def client(self) -> MediaMTXClient:
        return MediaMTXClient(GATEWAY_URL, transport=httpx.MockTransport(self.handler))


class FakeHub:
    """Home Assistant REST API with one media player"""

    def __init__(self):
        self.states = [
            {"entity_id": MEDIA_PLAYER, "state": "idle", "attributes": {"friendly_name": "Living Room TV"}},
            {"entity_id": "light.kitchen", "state": "on", "attributes": {}},
            {"entity_id": "camera.front_door", "state": "streaming", "attributes": {}},
        ]
        self.played: list[dict] = []
        self.play_status = 200
        self.play_body = "[]"
        self.fail_status: int | None = None
        self.requests: list[tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if request.headers.get("Authorization") != f"Bearer {HUB_TOKEN}":
            return httpx.Response(401, text="401: Unauthorized")
        if self.fail_status:
            return httpx.Response(self.fail_status, text="hub error")

        path = request.url.path
        if request.method == "GET" and path == "/api/states":
            return httpx.Response(200, json=self.states)
        if request.method == "GET" and path.startswith("/api/states/"):
            entity_id = path.removeprefix("/api/states/")
            for state in self.states:
                if state["entity_id"] == entity_id:
                    return httpx.Response(200, json=state)
            return httpx.Response(404, json={"message": "Entity not found."})
        if request.method == "POST" and path == "/api/services/media_player/play_media":
            self.played.append(json.loads(request.content))
            return httpx.Response(self.play_status, text=self.play_body)
        return httpx.Response(404)

    def client_factory(self, config: HomeAssistantConfig) -> HomeAssistantClient:
        return HomeAssistantClient.from_config(config, transport=httpx.MockTransport(self.handler))


async def _seed(session_factory) -> None:
    # no relationship() on the models, so parents are flushed before children
    async with session_factory() as session:
        session.add_all([
            IptvServer(id="s1", user_id=USER, name="Main", server_url=PROVIDER_URL, username="u", password="p"),
            IptvServer(id="s3", user_id=NO_CREDS_USER, name="Broken", server_url=PROVIDER_URL, username="u", password=""),
        ])
        await session.flush()
        session.add(IptvCategory(id="cat1", server_id="s1", external_id="5", name="News"))
        await session.flush()
        session.add_all([
            IptvChannel(id="ch1", server_id="s1", category_id="cat1", external_id="101", name="News One"),
            IptvChannel(id="ch3", server_id="s3", external_id="301", name="No Creds"),
            Kiosk(id="k1", user_id=USER, name="Hallway", enabled_features={"iptv": True, "cameras": True}),
            Kiosk(id="k-off", user_id=USER, name="Garage", is_active=False),
            Kiosk(id="k2", user_id=OTHER_USER, name="Other"),
            Camera(id="cam1", user_id=USER, name="Porch", rtsp_url="rtsp://10.0.0.5:554/stream1",
                   username="admin", password="secret"),
            Camera(id="cam2", user_id=OTHER_USER, name="Their Cam", rtsp_url="rtsp://10.0.0.9/live"),
            HomeAssistantConfig(user_id=USER, url=HUB_URL, access_token=HUB_TOKEN),
        ])
        await session.commit()


@pytest.fixture
async def session_factory():
    engine = create_engine(":memory:")
    await create_schema(engine)
    factory = create_session_factory(engine)
    await _seed(factory)
    yield factory
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return OwnershipStore(session_factory)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def hub():
    return FakeHub()


@pytest.fixture
def services(session_factory, provider, gateway, hub):
    return build_services(
        session_factory,
        provider_factory=provider.client_factory,
        hub_factory=hub.client_factory,
        gateway_client=gateway.client(),
    )
