from .conversation_service import ConversationService, conversation_id_for, get_conversation_service
from .identity_service import LocalIdentityProvider, get_identity_provider
from .interaction_service import InteractionService, get_interaction_service
from .profile_service import ProfileService, get_profile_service

__all__ = [
    "ConversationService",
    "InteractionService",
    "LocalIdentityProvider",
    "ProfileService",
    "conversation_id_for",
    "get_conversation_service",
    "get_identity_provider",
    "get_interaction_service",
    "get_profile_service",
]
