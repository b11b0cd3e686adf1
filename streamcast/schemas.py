from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from streamcast.services.cast_types import CastRequest, ContentType, TargetKind
from streamcast.utils.timezone import DateFormatError, validate_timezone


class CastRequestBody(BaseModel):
    """Cast request as sent by the web client"""
    model_config = ConfigDict(populate_by_name=True)

    target_id: str = Field(..., alias="targetId", min_length=1, description="Kiosk id or media_player entity id")
    target_kind: TargetKind = Field(..., alias="targetKind")
    content_type: ContentType = Field(..., alias="contentType")
    channel_id: str | None = Field(None, alias="channelId", description="Channel id for iptv casts")
    camera_id: str | None = Field(None, alias="cameraId", description="Standalone camera id")
    camera_entity_id: str | None = Field(None, alias="cameraEntityId", description="Hub camera entity id")
    multiview_items: list[dict[str, Any]] | None = Field(None, alias="multiviewItems")

    def to_domain(self) -> CastRequest:
        return CastRequest(
            target_id=self.target_id,
            target_kind=self.target_kind,
            content_type=self.content_type,
            channel_ref=self.channel_id,
            camera_ref=self.camera_id,
            camera_entity_ref=self.camera_entity_id,
            multiview_items=self.multiview_items,
        )


class CastResultResponse(BaseModel):
    """Outcome of a cast dispatch"""
    success: bool = True
    target_id: str
    target_kind: TargetKind
    content_type: ContentType
    media_url: str | None = Field(None, description="Dispatched media URL with credentials removed")
    commands_queued: int = 0


class CastTargetResponse(BaseModel):
    id: str
    name: str
    kind: TargetKind
    capabilities: list[str]
    state: str | None = None


class CastTargetsResponse(BaseModel):
    targets: list[CastTargetResponse]


class GuideChannelResponse(BaseModel):
    id: str
    server_id: str
    external_id: str
    name: str
    category_id: str | None
    category_name: str | None
    logo_url: str | None
    epg_channel_id: str | None


class GuideCategoryResponse(BaseModel):
    id: str
    server_id: str
    name: str
    channel_count: int


class GuideResponse(BaseModel):
    """Cached guide for the requesting user"""
    cached: bool = Field(..., description="False when no refresh has completed yet")
    stale: bool
    last_updated: str | None = Field(None, description="ISO8601 time of the last successful refresh")
    refreshing: bool = False
    channels: list[GuideChannelResponse]
    categories: list[GuideCategoryResponse]


class EpgEntryResponse(BaseModel):
    title: str
    description: str | None
    start_time: str
    end_time: str


class ChannelEpgResponse(BaseModel):
    channel_id: str
    timezone: str = Field(..., description="Timezone used for all timestamps in response")
    entries: list[EpgEntryResponse]


class GuideRefreshResponse(BaseModel):
    status: str = "ok"
    channels: int
    channels_with_epg: int
    last_updated: str | None


class ChannelStreamResponse(BaseModel):
    channel_id: str
    format: str
    url: str


class CameraStreamResponse(BaseModel):
    camera_id: str
    path_name: str
    webrtc_url: str
    hls_url: str


class CameraStreamStatusResponse(BaseModel):
    camera_id: str
    readiness: str = Field(..., description="absent, pending or ready")
    ready: bool
    webrtc_url: str
    hls_url: str


class KioskCommandResponse(BaseModel):
    type: str
    payload: dict[str, Any]
    timestamp: int


class KioskCommandsResponse(BaseModel):
    kiosk_id: str
    commands: list[KioskCommandResponse]


class TimezoneQuery(BaseModel):
    timezone: str = Field(default="UTC", description="Timezone for response timestamps (e.g., 'UTC', 'Europe/London')")

    @field_validator('timezone')
    @classmethod
    def check_timezone(cls, v: str) -> str:
        """Validate timezone string"""
        try:
            return validate_timezone(v)
        except DateFormatError:
            raise ValueError(f"Invalid timezone: {v}. Must be a valid IANA timezone (e.g., 'Europe/London', 'America/New_York') or 'UTC'")


class ErrorDetail(BaseModel):
    """Standard error detail"""
    code: str = Field(..., description="Error code (e.g., 'NOT_FOUND', 'UNSUPPORTED_COMBINATION')")
    message: str = Field(..., description="Human-readable error message")
    context: dict | None = Field(None, description="Additional context about the error")


class StandardErrorResponse(BaseModel):
    """Standardized error response for all endpoints"""
    status: str = Field("error", description="Status indicator")
    timestamp: str = Field(..., description="ISO8601 timestamp of error")
    retryable: bool = False
    error: ErrorDetail = Field(..., description="Error details")
