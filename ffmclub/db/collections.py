"""MongoDB collection names used by the service."""

from __future__ import annotations

USER_PROFILES_COLLECTION = "user_profiles"
CREDENTIALS_COLLECTION = "credentials"
CONVERSATIONS_COLLECTION = "conversations"
CONVERSATION_MESSAGES_COLLECTION = "conversation_messages"

__all__ = [
    "USER_PROFILES_COLLECTION",
    "CREDENTIALS_COLLECTION",
    "CONVERSATIONS_COLLECTION",
    "CONVERSATION_MESSAGES_COLLECTION",
]
