"""
Services package for the Stream Cast Service

This package contains the guide cache, stream path registry, stream resolver,
cast dispatcher and their supporting services.
"""
from streamcast.services.cast_dispatcher import CastDispatcher, check_compatibility
from streamcast.services.db_service import OwnershipStore
from streamcast.services.guide_cache import GuideCache
from streamcast.services.kiosk_queue import KioskCommandQueue
from streamcast.services.scheduler_service import GuideScheduler
from streamcast.services.stream_path_registry import StreamPathRegistry
from streamcast.services.stream_resolver import StreamResolver

__all__ = [
    'CastDispatcher',
    'check_compatibility',
    'OwnershipStore',
    'GuideCache',
    'KioskCommandQueue',
    'GuideScheduler',
    'StreamPathRegistry',
    'StreamResolver',
]
