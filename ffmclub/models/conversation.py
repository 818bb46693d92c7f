from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConversationDocument(BaseModel):
    """A two-party conversation, keyed by its canonical id."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    conversation_id: str = Field(alias="_id")
    participants: List[str]
    created_at: int = Field(alias="createdAt")
    last_message: Optional[str] = Field(default=None, alias="lastMessage")
    last_message_time: Optional[int] = Field(default=None, alias="lastMessageTime")


class Conversation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(alias="conversationId")
    participants: List[str]
    created_at: int = Field(alias="createdAt")
    last_message: Optional[str] = Field(default=None, alias="lastMessage")
    last_message_time: Optional[int] = Field(default=None, alias="lastMessageTime")

    @classmethod
    def from_document(cls, doc: ConversationDocument) -> "Conversation":
        return cls(**doc.model_dump())


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_id: str = Field(alias="messageId")
    conversation_id: str = Field(alias="conversationId")
    sender_id: str = Field(alias="senderId")
    recipient_id: str = Field(alias="recipientId")
    text: str
    timestamp: int
    read: bool = False


class ConversationCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    participant_id: str = Field(alias="participantId", min_length=1)


class ConversationCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: Literal[True] = True
    conversation_id: str = Field(alias="conversationId")


class MessageCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(max_length=4000)
    recipient_id: Optional[str] = Field(default=None, alias="recipientId")


class MessageResponse(BaseModel):
    success: Literal[True] = True
    message: Message


class MessageListResponse(BaseModel):
    success: Literal[True] = True
    messages: List[Message] = Field(default_factory=list)


class ConversationListResponse(BaseModel):
    success: Literal[True] = True
    conversations: List[Conversation] = Field(default_factory=list)


class MarkReadResponse(BaseModel):
    success: Literal[True] = True
    updated: int = 0


class UnreadCountResponse(BaseModel):
    success: Literal[True] = True
    count: int = 0


__all__ = [
    "Conversation",
    "ConversationCreateRequest",
    "ConversationCreateResponse",
    "ConversationDocument",
    "ConversationListResponse",
    "MarkReadResponse",
    "Message",
    "MessageCreateRequest",
    "MessageListResponse",
    "MessageResponse",
    "UnreadCountResponse",
]
