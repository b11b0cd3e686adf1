"""
SQLAlchemy ORM Models for the Stream Cast Service

Read-side models for the user-owned entities the cast core looks up:
live-TV servers, categories, channels, kiosks, cameras and hub configuration.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


class IptvServer(Base):
    """Live-TV provider account owned by a user"""
    __tablename__ = "iptv_servers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    server_url: Mapped[str] = mapped_column(String, nullable=False)
    username: Mapped[str] = mapped_column(String, nullable=False, default="")
    password: Mapped[str] = mapped_column(String, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    def __repr__(self) -> str:
        return f"<IptvServer(id={self.id}, name={self.name})>"


class IptvCategory(Base):
    """Channel grouping as reported by the provider"""
    __tablename__ = "iptv_categories"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    server_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("iptv_servers.id", ondelete="CASCADE"),
        nullable=False
    )
    external_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        Index("idx_iptv_categories_external", "server_id", "external_id"),
    )


class IptvChannel(Base):
    """Live-TV channel; ``external_id`` is the provider stream id"""
    __tablename__ = "iptv_channels"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    server_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("iptv_servers.id", ondelete="CASCADE"),
        nullable=False
    )
    category_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("iptv_categories.id", ondelete="SET NULL"),
        nullable=True
    )
    external_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    logo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    epg_channel_id: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        Index("idx_iptv_channels_external", "server_id", "external_id"),
    )

    def __repr__(self) -> str:
        return f"<IptvChannel(id={self.id}, external_id={self.external_id}, name={self.name})>"


class Kiosk(Base):
    """Locally-managed display that polls a command queue"""
    __tablename__ = "kiosks"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False, default="My Kiosk")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enabled_features: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    def __repr__(self) -> str:
        return f"<Kiosk(id={self.id}, name={self.name})>"


class Camera(Base):
    """Standalone RTSP camera"""
    __tablename__ = "cameras"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    rtsp_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    username: Mapped[str | None] = mapped_column(String, nullable=True)
    password: Mapped[str | None] = mapped_column(String, nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Camera(id={self.id}, name={self.name})>"


class HomeAssistantConfig(Base):
    """Smart-home hub connection, one per user"""
    __tablename__ = "home_assistant_config"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    url: Mapped[str] = mapped_column(String, nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
