"""aiortc 기반 피어 링크/미디어/렌더링 어댑터"""

from meshcall.client.webrtc.media import AiortcMediaSource, ToggleableTrack
from meshcall.client.webrtc.peer_link import AiortcPeerLink, AiortcPeerLinkFactory
from meshcall.client.webrtc.render import MediaSinkSurface

__all__ = [
    "AiortcMediaSource",
    "AiortcPeerLink",
    "AiortcPeerLinkFactory",
    "MediaSinkSurface",
    "ToggleableTrack",
]
