"""
Cast Dispatcher

Validates cast requests and delivers them either to a kiosk's command queue
or to a hub media player through ``media_player.play_media``.

A dispatch is complete once commands are queued or the hub accepted the call;
whether playback actually starts is not tracked here.
"""
import logging
from typing import Any

from streamcast.config import settings
from streamcast.exceptions import (
    InvalidCastRequestError,
    NotFoundError,
    StreamCastError,
    UnsupportedCombinationError,
)
from streamcast.models import Kiosk
from streamcast.services.cast_types import (
    CameraVia,
    Capability,
    CastRequest,
    CastResult,
    CastTarget,
    ContentType,
    TargetKind,
)
from streamcast.services.db_service import OwnershipStore
from streamcast.services.kiosk_queue import KioskCommandQueue
from streamcast.services.stream_resolver import StreamResolver
from streamcast.clients.home_assistant import MEDIA_PLAYER_DOMAIN
from streamcast.utils.logging_helpers import log_dispatch, sanitize_url


logger = logging.getLogger(__name__)

MEDIA_PLAYER_CAPABILITIES = frozenset({Capability.IPTV, Capability.CAMERAS})

_NAVIGATE_PATHS = {
    ContentType.IPTV: "iptv",
    ContentType.CAMERA: "cameras",
    ContentType.MULTIVIEW: "multiview",
}


def check_compatibility(target_kind: TargetKind, content_type: ContentType) -> None:
    """
    Raises:
        UnsupportedCombinationError: If content_type cannot be shown on target_kind
    """
    if content_type is ContentType.MULTIVIEW and target_kind is TargetKind.MEDIA_PLAYER:
        raise UnsupportedCombinationError(
            "Multiview cannot be cast to media players - it requires a web-based kiosk",
            context={"target_kind": target_kind.value, "content_type": content_type.value},
        )


def kiosk_capabilities(enabled_features: dict | None) -> frozenset[Capability]:
    features = enabled_features or {}
    capabilities = set()
    if features.get("iptv"):
        capabilities.add(Capability.IPTV)
    if features.get("cameras"):
        capabilities.add(Capability.CAMERAS)
    if capabilities:
        capabilities.add(Capability.MULTIVIEW)
    return frozenset(capabilities)


def _require_content(request: CastRequest) -> None:
    if request.content_type is ContentType.IPTV and not request.channel_ref:
        raise InvalidCastRequestError("channelId is required for iptv casts")
    if request.content_type is ContentType.CAMERA and not (request.camera_ref or request.camera_entity_ref):
        raise InvalidCastRequestError("cameraId or cameraEntityId is required for camera casts")
    if request.content_type is ContentType.MULTIVIEW and not request.multiview_items:
        raise InvalidCastRequestError("multiviewItems is required for multiview casts")


class CastDispatcher:
    def __init__(
        self,
        store: OwnershipStore,
        resolver: StreamResolver,
        kiosk_queue: KioskCommandQueue,
        *,
        media_content_type: str | None = None,
    ):
        self._store = store
        self._resolver = resolver
        self._kiosk_queue = kiosk_queue
        self._media_content_type = media_content_type or settings.play_media_content_type

    async def list_targets(self, user_id: str) -> list[CastTarget]:
        """Active kiosks plus the hub's media players; an unreachable hub yields kiosks only"""
        targets = [
            CastTarget(
                id=kiosk.id,
                name=kiosk.name,
                kind=TargetKind.KIOSK,
                capabilities=kiosk_capabilities(kiosk.enabled_features),
            )
            for kiosk in await self._store.list_active_kiosks(user_id)
        ]

        if await self._store.get_hub_config(user_id) is None:
            return targets

        try:
            client = await self._resolver.hub_client(user_id)
            players = await client.list_media_players()
        except StreamCastError as exc:
            logger.warning("Failed to fetch hub media players for cast targets: %s", exc.message)
            return targets

        for entity in players:
            attributes = entity.get("attributes") or {}
            targets.append(CastTarget(
                id=entity["entity_id"],
                name=attributes.get("friendly_name") or entity["entity_id"],
                kind=TargetKind.MEDIA_PLAYER,
                capabilities=MEDIA_PLAYER_CAPABILITIES,
                state=entity.get("state"),
            ))
        return targets

    async def dispatch(self, user_id: str, request: CastRequest) -> CastResult:
        """
        Validate and execute a cast request.

        Raises:
            UnsupportedCombinationError: multiview to a media player
            InvalidCastRequestError: content reference missing for the content type
            NotFoundError: target or content missing or not owned
            UnauthorizedError: provider or hub credentials missing
            UnavailableError: a dependency could not be reached
            DispatchFailedError: the hub rejected play_media
        """
        check_compatibility(request.target_kind, request.content_type)
        _require_content(request)

        if request.target_kind is TargetKind.KIOSK:
            kiosk = await self._store.get_kiosk(user_id, request.target_id)
            if kiosk is None:
                raise NotFoundError("Kiosk not found", context={"kiosk_id": request.target_id})
            await self._verify_kiosk_content(user_id, request)
            result = await self._dispatch_to_kiosk(kiosk, request)
        else:
            result = await self._dispatch_to_media_player(user_id, request)

        log_dispatch(logger, request.content_type.value, request.target_kind.value, request.target_id)
        return result

    async def _verify_kiosk_content(self, user_id: str, request: CastRequest) -> None:
        """Kiosks resolve streams themselves; only ownership is checked here"""
        if request.content_type is ContentType.IPTV:
            await self._resolver.locate_channel(user_id, request.channel_ref)
        elif request.content_type is ContentType.CAMERA and not request.camera_entity_ref:
            if await self._store.get_camera(user_id, request.camera_ref) is None:
                raise NotFoundError("Camera not found", context={"camera_id": request.camera_ref})

    async def _dispatch_to_kiosk(self, kiosk: Kiosk, request: CastRequest) -> CastResult:
        content_command = self._kiosk_content_command(request)
        queued = await self._kiosk_queue.append_many(
            kiosk.id,
            [("navigate", {"path": _NAVIGATE_PATHS[request.content_type]}), content_command],
        )
        return CastResult(
            target_id=kiosk.id,
            target_kind=TargetKind.KIOSK,
            content_type=request.content_type,
            commands_queued=len(queued),
        )

    @staticmethod
    def _kiosk_content_command(request: CastRequest) -> tuple[str, dict[str, Any]]:
        if request.content_type is ContentType.IPTV:
            return "iptv-play", {"channelId": request.channel_ref}
        if request.content_type is ContentType.CAMERA:
            return "camera-view", {
                "cameraId": request.camera_entity_ref or request.camera_ref,
                "cameraType": "ha" if request.camera_entity_ref else "standalone",
            }
        return "multiview-set", {"items": list(request.multiview_items or [])}

    async def _dispatch_to_media_player(self, user_id: str, request: CastRequest) -> CastResult:
        if not request.target_id.startswith(MEDIA_PLAYER_DOMAIN):
            raise NotFoundError("Media player not found", context={"entity_id": request.target_id})

        # content checks read the store only; the hub is contacted after them
        camera = None
        if request.content_type is ContentType.IPTV:
            media_url = await self._resolver.resolve_channel_stream(user_id, request.channel_ref)
        elif request.camera_entity_ref:
            media_url = await self._resolver.resolve_camera_stream(
                user_id,
                request.camera_entity_ref,
                CameraVia.HUB,
            )
        else:
            camera = await self._resolver.streamable_camera(user_id, request.camera_ref)

        hub = await self._resolver.hub_client(user_id)
        if await hub.get_state(request.target_id) is None:
            raise NotFoundError("Media player not found", context={"entity_id": request.target_id})

        if camera is not None:
            media_url = await self._resolver.resolve_camera_stream(
                user_id,
                camera.id,
                CameraVia.STANDALONE,
                ensure_path=True,
            )

        await hub.play_media(request.target_id, self._media_content_type, media_url)
        logger.debug("play_media %s <- %s", request.target_id, sanitize_url(media_url))
        return CastResult(
            target_id=request.target_id,
            target_kind=TargetKind.MEDIA_PLAYER,
            content_type=request.content_type,
            media_url=media_url,
        )
