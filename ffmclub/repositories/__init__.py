"""Repository layer to abstract MongoDB access patterns."""

from .conversation import ConversationRepository
from .credentials import CredentialRepository
from .user_profile import UserProfileRepository

__all__ = ["ConversationRepository", "CredentialRepository", "UserProfileRepository"]
