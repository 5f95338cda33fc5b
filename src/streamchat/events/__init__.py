"""Observer hooks for streamchat."""

from streamchat.events.bus import EventBus

__all__ = ["EventBus"]
