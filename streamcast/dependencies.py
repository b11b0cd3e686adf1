"""
Dependency Injection Configuration

Builds the service graph once at startup and exposes it to request handlers
through FastAPI dependencies. Tests build their own graph with fake protocol
clients and attach it to ``app.state``.
"""
import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streamcast.clients.mediamtx import MediaMTXClient
from streamcast.services import (
    CastDispatcher,
    GuideCache,
    GuideScheduler,
    KioskCommandQueue,
    OwnershipStore,
    StreamPathRegistry,
    StreamResolver,
)
from streamcast.services.guide_cache import ClientFactory
from streamcast.services.stream_resolver import HubClientFactory


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    """Long-lived service instances shared by all requests"""
    store: OwnershipStore
    guide_cache: GuideCache
    path_registry: StreamPathRegistry
    resolver: StreamResolver
    kiosk_queue: KioskCommandQueue
    dispatcher: CastDispatcher
    scheduler: GuideScheduler


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    provider_factory: ClientFactory | None = None,
    hub_factory: HubClientFactory | None = None,
    gateway_client: MediaMTXClient | None = None,
) -> Services:
    """
    Wire the service graph.

    Args:
        session_factory: Session factory for the ownership store
        provider_factory: Builds a live-TV provider client for a server row
        hub_factory: Builds a hub client for a hub configuration row
        gateway_client: Transcoding gateway client
    """
    store = OwnershipStore(session_factory)
    guide_cache = GuideCache(store, client_factory=provider_factory)
    path_registry = StreamPathRegistry(gateway_client)
    resolver = StreamResolver(
        store,
        guide_cache,
        path_registry,
        provider_factory=provider_factory,
        hub_factory=hub_factory,
    )
    kiosk_queue = KioskCommandQueue()
    dispatcher = CastDispatcher(store, resolver, kiosk_queue)
    scheduler = GuideScheduler(guide_cache, kiosk_queue)

    logger.debug("Service graph built")
    return Services(
        store=store,
        guide_cache=guide_cache,
        path_registry=path_registry,
        resolver=resolver,
        kiosk_queue=kiosk_queue,
        dispatcher=dispatcher,
        scheduler=scheduler,
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized. They are built during application startup.")
    return services


def get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Authenticated user id, set by the upstream auth proxy"""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


ServicesDep = Annotated[Services, Depends(get_services)]
UserId = Annotated[str, Depends(get_user_id)]
