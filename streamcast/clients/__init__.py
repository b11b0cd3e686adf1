"""
Protocol clients for the live-TV provider, the transcoding gateway and the smart-home hub.
"""
from streamcast.clients.xtream_codes import XtreamCodesClient
from streamcast.clients.mediamtx import MediaMTXClient
from streamcast.clients.home_assistant import HomeAssistantClient

__all__ = [
    'XtreamCodesClient',
    'MediaMTXClient',
    'HomeAssistantClient',
]
