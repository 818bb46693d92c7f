from typing import Any, Dict

from .services.conversation_service import get_conversation_service
from .services.profile_service import get_profile_service


async def handle_realtime_event(event: Dict[str, Any]) -> None:
    """Re-deliver a change published by another process to local subscribers.

    Expected shape: ``{"kind": "conversation" | "profile", "id": "<id>"}``.
    """
    kind = str(event.get("kind") or "")
    target = str(event.get("id") or "")
    if not target:
        return
    if kind == "conversation":
        await get_conversation_service().refresh_subscribers(target)
    elif kind == "profile":
        await get_profile_service().refresh_watchers(target)


__all__ = ["handle_realtime_event"]
