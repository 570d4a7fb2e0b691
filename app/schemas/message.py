from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class Message(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    read: bool = False
    timestamp: datetime

    model_config = {"from_attributes": True}


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(min_length=1)


class Conversation(BaseModel):
    user_id: int
    name: str
    profile_image: Optional[str] = None
    last_message: str
    last_message_time: datetime
    read: bool
