"""
Ownership store

Read-only lookups for user-owned entities. Every lookup is scoped to the
requesting user so an entity owned by someone else reads as missing.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streamcast.database import session_scope
from streamcast.models import (
    Camera,
    HomeAssistantConfig,
    IptvCategory,
    IptvChannel,
    IptvServer,
    Kiosk,
)


logger = logging.getLogger(__name__)


class OwnershipStore:
    """Async read access to kiosks, cameras, live-TV servers and hub configuration"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_kiosk(self, user_id: str, kiosk_id: str) -> Kiosk | None:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(Kiosk).where(Kiosk.id == kiosk_id, Kiosk.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def list_active_kiosks(self, user_id: str) -> list[Kiosk]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(Kiosk)
                .where(Kiosk.user_id == user_id, Kiosk.is_active.is_(True))
                .order_by(Kiosk.created_at)
            )
            return list(result.scalars().all())

    async def get_camera(self, user_id: str, camera_id: str) -> Camera | None:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(Camera).where(Camera.id == camera_id, Camera.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def get_server(self, user_id: str, server_id: str) -> IptvServer | None:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(IptvServer).where(IptvServer.id == server_id, IptvServer.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def get_channel_with_server(
        self,
        user_id: str,
        channel_id: str
    ) -> tuple[IptvChannel, IptvServer] | None:
        """Return the channel joined with its owning server, or None"""
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(IptvChannel, IptvServer)
                .join(IptvServer, IptvChannel.server_id == IptvServer.id)
                .where(IptvChannel.id == channel_id, IptvServer.user_id == user_id)
                .limit(1)
            )
            row = result.first()
            return (row[0], row[1]) if row else None

    async def list_servers(self, user_id: str, *, active_only: bool = True) -> list[IptvServer]:
        async with session_scope(self._session_factory) as session:
            stmt = select(IptvServer).where(IptvServer.user_id == user_id)
            if active_only:
                stmt = stmt.where(IptvServer.is_active.is_(True))
            result = await session.execute(stmt.order_by(IptvServer.created_at))
            return list(result.scalars().all())

    async def list_user_ids_with_servers(self) -> list[str]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(IptvServer.user_id)
                .where(IptvServer.is_active.is_(True))
                .distinct()
            )
            return list(result.scalars().all())

    async def get_channel_id_map(self, server_id: str) -> dict[str, str]:
        """Map provider external id -> local channel id for a server"""
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(IptvChannel.external_id, IptvChannel.id).where(IptvChannel.server_id == server_id)
            )
            return {external_id: channel_id for external_id, channel_id in result.all()}

    async def get_category_id_map(self, server_id: str) -> dict[str, str]:
        """Map provider external id -> local category id for a server"""
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(IptvCategory.external_id, IptvCategory.id).where(IptvCategory.server_id == server_id)
            )
            return {external_id: category_id for external_id, category_id in result.all()}

    async def get_hub_config(self, user_id: str) -> HomeAssistantConfig | None:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(HomeAssistantConfig).where(HomeAssistantConfig.user_id == user_id).limit(1)
            )
            return result.scalar_one_or_none()
