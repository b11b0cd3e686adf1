from typing import Annotated
from fastapi import APIRouter, HTTPException, Query
import logging

from streamcast.dependencies import ServicesDep, UserId
from streamcast.exceptions import NotFoundError
from streamcast.schemas import (
    CameraStreamResponse,
    CameraStreamStatusResponse,
    CastRequestBody,
    CastResultResponse,
    CastTargetResponse,
    CastTargetsResponse,
    ChannelEpgResponse,
    ChannelStreamResponse,
    EpgEntryResponse,
    GuideCategoryResponse,
    GuideChannelResponse,
    GuideRefreshResponse,
    GuideResponse,
    KioskCommandResponse,
    KioskCommandsResponse,
    TimezoneQuery,
)
from streamcast.services.cast_types import StreamReadiness
from streamcast.utils.logging_helpers import sanitize_url
from streamcast.utils.timezone import DateFormatError, convert_to_timezone, parse_iso8601_to_utc


logger = logging.getLogger(__name__)

main_router = APIRouter()

@main_router.get("/")
async def root(services: ServicesDep) -> dict:
    """Root endpoint with service information"""
    next_run = services.scheduler.get_next_run_time()

    return {
        "service": "Stream Cast Service",
        "version": "0.1.0",
        "next_guide_sweep": next_run.isoformat() if next_run else None,
        "endpoints": {
            "guide": "/guide - Cached live-TV guide (GET), /guide/refresh - Rebuild it (POST)",
            "channels": "/channels/{id}/stream - Live stream URL for a channel",
            "cameras": "/cameras/{id}/stream - Register (POST) or remove (DELETE) a camera path",
            "cast": "/cast-targets - List targets, /cast - Cast content (POST)",
            "health": "/health - Health check"
        }
    }


@main_router.get("/health")
async def health_check(services: ServicesDep) -> dict:
    """Health check endpoint"""
    next_run = services.scheduler.get_next_run_time()
    return {
        "status": "ok",
        "gateway_available": await services.path_registry.is_available(),
        "scheduler_running": services.scheduler.running,
        "next_guide_sweep": next_run.isoformat() if next_run else None,
        "guide_cache": services.guide_cache.stats(),
    }


@main_router.get("/guide", response_model=GuideResponse)
async def get_guide(user_id: UserId, services: ServicesDep) -> GuideResponse:
    """
    Get the cached guide

    Never contacts the providers; a missing or stale guide is reported through
    the ``cached`` and ``stale`` flags.
    """
    cache = services.guide_cache
    view = cache.get(user_id)
    snapshot = view.snapshot
    return GuideResponse(
        cached=view.cached,
        stale=cache.is_stale(user_id),
        last_updated=view.last_updated.isoformat() if view.last_updated else None,
        refreshing=cache.is_refreshing(user_id),
        channels=[
            GuideChannelResponse(
                id=channel.id,
                server_id=channel.server_id,
                external_id=channel.external_id,
                name=channel.name,
                category_id=channel.category_id,
                category_name=channel.category_name,
                logo_url=channel.logo_url,
                epg_channel_id=channel.epg_channel_id,
            )
            for channel in snapshot.channels
        ],
        categories=[
            GuideCategoryResponse(
                id=category.id,
                server_id=category.server_id,
                name=category.name,
                channel_count=category.channel_count,
            )
            for category in snapshot.categories
        ],
    )


@main_router.post("/guide/refresh", response_model=GuideRefreshResponse)
async def refresh_guide(user_id: UserId, services: ServicesDep) -> GuideRefreshResponse:
    """
    Rebuild the guide from the live-TV providers

    Concurrent calls share one refresh. On failure the previous guide is kept.
    """
    logger.info(f"Manual guide refresh triggered via API for user {user_id}")
    snapshot = await services.guide_cache.refresh(user_id)
    return GuideRefreshResponse(
        channels=len(snapshot.channels),
        channels_with_epg=len(snapshot.epg_by_channel),
        last_updated=snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
    )


@main_router.get("/guide/channels/{channel_id}/epg", response_model=ChannelEpgResponse)
async def get_channel_epg(
    channel_id: str,
    user_id: UserId,
    services: ServicesDep,
    query: Annotated[TimezoneQuery, Query()],
) -> ChannelEpgResponse:
    """EPG entries of one cached channel, with timestamps in the requested timezone"""
    cache = services.guide_cache
    if cache.find_channel(user_id, channel_id) is None:
        raise NotFoundError("Channel not in cached guide", context={"channel_id": channel_id})

    return ChannelEpgResponse(
        channel_id=channel_id,
        timezone=query.timezone,
        entries=[
            EpgEntryResponse(
                title=entry.title,
                description=entry.description,
                start_time=convert_to_timezone(entry.start_time, query.timezone),
                end_time=convert_to_timezone(entry.end_time, query.timezone),
            )
            for entry in cache.epg_for_channel(user_id, channel_id)
        ],
    )


@main_router.get("/channels/{channel_id}/stream", response_model=ChannelStreamResponse)
async def get_channel_stream(
    channel_id: str,
    user_id: UserId,
    services: ServicesDep,
    format: Annotated[str, Query(pattern="^(m3u8|ts)$")] = "m3u8",
) -> ChannelStreamResponse:
    """Live stream URL for a channel"""
    url = await services.resolver.resolve_channel_stream(user_id, channel_id, format)
    return ChannelStreamResponse(channel_id=channel_id, format=format, url=url)


@main_router.get("/channels/{channel_id}/timeshift", response_model=ChannelStreamResponse)
async def get_channel_timeshift(
    channel_id: str,
    user_id: UserId,
    services: ServicesDep,
    start: Annotated[str, Query(description="ISO8601 start of the past program")],
    duration: Annotated[int, Query(gt=0, le=1440, description="Duration in minutes")],
) -> ChannelStreamResponse:
    """Catch-up stream URL for a past program"""
    try:
        start_dt = parse_iso8601_to_utc(start)
    except DateFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    url = await services.resolver.resolve_timeshift_stream(user_id, channel_id, start_dt, duration)
    return ChannelStreamResponse(channel_id=channel_id, format="ts", url=url)


@main_router.post("/cameras/{camera_id}/stream", response_model=CameraStreamResponse)
async def register_camera_stream(camera_id: str, user_id: UserId, services: ServicesDep) -> CameraStreamResponse:
    """Create or update the camera's transcoding path; safe to repeat"""
    camera = await services.store.get_camera(user_id, camera_id)
    if camera is None:
        raise NotFoundError("Camera not found", context={"camera_id": camera_id})
    if not camera.rtsp_url:
        raise NotFoundError("Camera has no RTSP source", context={"camera_id": camera_id})

    registration = await services.path_registry.register_camera(
        camera.id,
        camera.rtsp_url,
        camera.username,
        camera.password,
    )
    return CameraStreamResponse(
        camera_id=camera.id,
        path_name=registration.path_name,
        webrtc_url=registration.webrtc_url,
        hls_url=registration.hls_url,
    )


@main_router.delete("/cameras/{camera_id}/stream")
async def unregister_camera_stream(camera_id: str, user_id: UserId, services: ServicesDep) -> dict:
    """Remove the camera's transcoding path; removing an absent path succeeds"""
    if await services.store.get_camera(user_id, camera_id) is None:
        raise NotFoundError("Camera not found", context={"camera_id": camera_id})
    await services.path_registry.unregister_camera(camera_id)
    return {"status": "ok", "camera_id": camera_id}


@main_router.get("/cameras/{camera_id}/stream/status", response_model=CameraStreamStatusResponse)
async def camera_stream_status(camera_id: str, user_id: UserId, services: ServicesDep) -> CameraStreamStatusResponse:
    """Readiness of the camera's transcoding path"""
    if await services.store.get_camera(user_id, camera_id) is None:
        raise NotFoundError("Camera not found", context={"camera_id": camera_id})

    registry = services.path_registry
    readiness = await registry.stream_readiness(camera_id)
    urls = registry.get_stream_urls(camera_id)
    return CameraStreamStatusResponse(
        camera_id=camera_id,
        readiness=readiness.value,
        ready=readiness is StreamReadiness.READY,
        webrtc_url=urls.webrtc_url,
        hls_url=urls.hls_url,
    )


@main_router.get("/cast-targets", response_model=CastTargetsResponse)
async def list_cast_targets(user_id: UserId, services: ServicesDep) -> CastTargetsResponse:
    """Active kiosks plus the hub's media players"""
    targets = await services.dispatcher.list_targets(user_id)
    return CastTargetsResponse(targets=[
        CastTargetResponse(
            id=target.id,
            name=target.name,
            kind=target.kind,
            capabilities=sorted(capability.value for capability in target.capabilities),
            state=target.state,
        )
        for target in targets
    ])


@main_router.post("/cast", response_model=CastResultResponse)
async def cast(request: CastRequestBody, user_id: UserId, services: ServicesDep) -> CastResultResponse:
    """
    Cast content to a kiosk or media player

    Kiosks receive queued commands; media players receive one play_media call.
    """
    result = await services.dispatcher.dispatch(user_id, request.to_domain())
    return CastResultResponse(
        target_id=result.target_id,
        target_kind=result.target_kind,
        content_type=result.content_type,
        media_url=sanitize_url(result.media_url) if result.media_url else None,
        commands_queued=result.commands_queued,
    )


@main_router.get("/kiosks/{kiosk_id}/commands", response_model=KioskCommandsResponse)
async def poll_kiosk_commands(
    kiosk_id: str,
    user_id: UserId,
    services: ServicesDep,
    since: Annotated[int, Query(ge=0, description="Return commands newer than this epoch-ms timestamp")] = 0,
) -> KioskCommandsResponse:
    """Pending, unexpired commands for a kiosk"""
    if await services.store.get_kiosk(user_id, kiosk_id) is None:
        raise NotFoundError("Kiosk not found", context={"kiosk_id": kiosk_id})

    commands = services.kiosk_queue.poll(kiosk_id, since)
    return KioskCommandsResponse(
        kiosk_id=kiosk_id,
        commands=[KioskCommandResponse(**command.to_dict()) for command in commands],
    )
