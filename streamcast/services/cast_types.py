"""
Shared dataclasses and enums used across guide caching, stream resolution and casting.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class TargetKind(str, Enum):
    KIOSK = "kiosk"
    MEDIA_PLAYER = "media_player"


class ContentType(str, Enum):
    IPTV = "iptv"
    CAMERA = "camera"
    MULTIVIEW = "multiview"


class Capability(str, Enum):
    IPTV = "iptv"
    CAMERAS = "cameras"
    MULTIVIEW = "multiview"


class CameraVia(str, Enum):
    """Where a camera stream comes from"""
    STANDALONE = "standalone"
    HUB = "hub"


class StreamReadiness(str, Enum):
    """Gateway-side state of a camera's transcoding path"""
    ABSENT = "absent"
    PENDING = "pending"
    READY = "ready"


@dataclass(frozen=True, slots=True)
class GuideChannel:
    id: str
    server_id: str
    external_id: str
    name: str
    category_id: str | None = None
    category_name: str | None = None
    logo_url: str | None = None
    epg_channel_id: str | None = None


@dataclass(frozen=True, slots=True)
class GuideCategory:
    id: str
    server_id: str
    external_id: str
    name: str
    channel_count: int = 0


@dataclass(frozen=True, slots=True)
class EpgEntry:
    """Program slot covering the half-open interval [start_time, end_time)."""
    channel_id: str
    title: str
    start_time: datetime
    end_time: datetime
    description: str | None = None


@dataclass(frozen=True, slots=True)
class GuideSnapshot:
    """Immutable cache value; replaced as a whole on each refresh."""
    channels: tuple[GuideChannel, ...] = ()
    categories: tuple[GuideCategory, ...] = ()
    epg_by_channel: Mapping[str, tuple[EpgEntry, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    fetched_at: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return self.fetched_at is None

    def channel(self, channel_id: str) -> GuideChannel | None:
        for channel in self.channels:
            if channel.id == channel_id:
                return channel
        return None


@dataclass(frozen=True, slots=True)
class GuideView:
    """Result of a cache read: the snapshot plus observability fields."""
    snapshot: GuideSnapshot
    cached: bool
    last_updated: datetime | None


@dataclass(frozen=True, slots=True)
class StreamUrls:
    webrtc_url: str
    hls_url: str


@dataclass(frozen=True, slots=True)
class CameraRegistration:
    path_name: str
    webrtc_url: str
    hls_url: str


@dataclass(slots=True)
class TranscodePath:
    """Gateway path state as last reported by the gateway."""
    path_name: str
    source_url: str | None = None
    source_type: str | None = None
    ready: bool = False
    readers: int = 0


@dataclass(frozen=True, slots=True)
class CastTarget:
    id: str
    name: str
    kind: TargetKind
    capabilities: frozenset[Capability]
    state: str | None = None


@dataclass(slots=True)
class CastRequest:
    target_id: str
    target_kind: TargetKind
    content_type: ContentType
    channel_ref: str | None = None
    camera_ref: str | None = None
    camera_entity_ref: str | None = None
    multiview_items: list[dict[str, Any]] | None = None


@dataclass(frozen=True, slots=True)
class CastResult:
    target_id: str
    target_kind: TargetKind
    content_type: ContentType
    media_url: str | None = None
    commands_queued: int = 0


@dataclass(frozen=True, slots=True)
class KioskCommand:
    kiosk_id: str
    type: str
    payload: dict[str, Any]
    timestamp: int  # epoch milliseconds

    def to_dict(self) -> dict:
        return {"type": self.type, "payload": self.payload, "timestamp": self.timestamp}


__all__ = [
    "TargetKind",
    "ContentType",
    "Capability",
    "CameraVia",
    "StreamReadiness",
    "GuideChannel",
    "GuideCategory",
    "EpgEntry",
    "GuideSnapshot",
    "GuideView",
    "StreamUrls",
    "CameraRegistration",
    "TranscodePath",
    "CastTarget",
    "CastRequest",
    "CastResult",
    "KioskCommand",
]
