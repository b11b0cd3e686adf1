"""
Stream Path Registry

Owns the on-demand RTSP -> WebRTC/HLS transcoding path of each standalone
camera. The gateway holds the real state; this registry only upserts, removes
and reads it.
"""
import logging
from urllib.parse import quote, urlsplit, urlunsplit

from streamcast.clients.mediamtx import MediaMTXClient
from streamcast.config import settings
from streamcast.services.cast_types import (
    CameraRegistration,
    StreamReadiness,
    StreamUrls,
    TranscodePath,
)
from streamcast.services.fetch_coordinator import KeyedLock
from streamcast.utils.logging_helpers import sanitize_url


logger = logging.getLogger(__name__)


def path_name_for(camera_id: str) -> str:
    return f"camera/{camera_id}"


def build_source_url(base_url: str, username: str | None = None, password: str | None = None) -> str:
    """
    Embed credentials into an RTSP URL

    The URL is returned unchanged when either credential is missing or it
    cannot be parsed.
    """
    if not username or not password:
        return base_url
    try:
        parts = urlsplit(base_url)
        host = parts.hostname
    except ValueError:
        return base_url
    if not parts.scheme or not host:
        return base_url

    netloc = host if ":" not in host else f"[{host}]"
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    userinfo = f"{quote(username, safe='')}:{quote(password, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{netloc}", parts.path, parts.query, parts.fragment))


class StreamPathRegistry:
    """Idempotent management of camera transcoding paths"""

    def __init__(self, client: MediaMTXClient | None = None):
        self._client = client or MediaMTXClient()
        self._locks = KeyedLock()

    def _new_path_config(self, source_url: str) -> dict:
        return {
            "source": source_url,
            "sourceProtocol": settings.mediamtx_source_protocol,
            "sourceOnDemand": True,
            "sourceOnDemandStartTimeout": settings.mediamtx_on_demand_start_timeout,
            "sourceOnDemandCloseAfter": settings.mediamtx_on_demand_close_after,
        }

    async def ensure_path(self, path_name: str, source_url: str) -> bool:
        """
        Make the gateway path exist with the given source.

        Returns:
            True if the gateway was changed, False if it already matched
        """
        existing = await self._client.get_path_config(path_name)
        if existing is None:
            await self._client.add_path(path_name, self._new_path_config(source_url))
            logger.info("Created on-demand path %s -> %s", path_name, sanitize_url(source_url))
            return True

        if existing.get("source") == source_url:
            logger.debug("Path %s already up to date", path_name)
            return False

        await self._client.patch_path(path_name, {"source": source_url})
        logger.info("Updated path %s -> %s", path_name, sanitize_url(source_url))
        return True

    async def register_camera(
        self,
        camera_id: str,
        source_url: str,
        username: str | None = None,
        password: str | None = None,
    ) -> CameraRegistration:
        """
        Create or update the camera's path; safe to call repeatedly.

        Raises:
            UnavailableError: If the gateway is unreachable
            DispatchFailedError: If the gateway rejects the path configuration
        """
        path_name = path_name_for(camera_id)
        full_source = build_source_url(source_url, username, password)

        async with self._locks(camera_id):
            await self.ensure_path(path_name, full_source)

        urls = self.get_stream_urls(camera_id)
        return CameraRegistration(path_name=path_name, webrtc_url=urls.webrtc_url, hls_url=urls.hls_url)

    async def unregister_camera(self, camera_id: str) -> None:
        """Delete the camera's path; an already absent path counts as success"""
        path_name = path_name_for(camera_id)
        async with self._locks(camera_id):
            removed = await self._client.delete_path(path_name)
        if removed:
            logger.info("Removed path %s", path_name)
        else:
            logger.info("Path %s was already absent", path_name)

    async def get_path(self, camera_id: str) -> TranscodePath | None:
        """Runtime state of the camera's path; source_url has credentials masked"""
        path_name = path_name_for(camera_id)
        path = await self._client.get_path(path_name, timeout=settings.availability_timeout_sec)
        if path is None:
            return None
        config = await self._client.get_path_config(path_name)
        configured_source = config.get("source") if config else None
        readers = path.get("readers") or []
        source = path.get("source")
        return TranscodePath(
            path_name=path.get("name") or path_name,
            source_url=sanitize_url(configured_source) if configured_source else None,
            source_type=source.get("type") if isinstance(source, dict) else None,
            ready=bool(path.get("ready")),
            readers=len(readers) if isinstance(readers, list) else int(readers),
        )

    async def stream_readiness(self, camera_id: str) -> StreamReadiness:
        path = await self._client.get_path(
            path_name_for(camera_id),
            timeout=settings.availability_timeout_sec,
        )
        if path is None:
            return StreamReadiness.ABSENT
        return StreamReadiness.READY if path.get("ready") else StreamReadiness.PENDING

    async def is_stream_ready(self, camera_id: str) -> bool:
        return await self.stream_readiness(camera_id) is StreamReadiness.READY

    def get_stream_urls(self, camera_id: str) -> StreamUrls:
        path_name = path_name_for(camera_id)
        return StreamUrls(
            webrtc_url=self._client.webrtc_url(path_name),
            hls_url=self._client.hls_url(path_name),
        )

    async def is_available(self) -> bool:
        return await self._client.is_available()
