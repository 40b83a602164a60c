# listsync/schemas/chat.py

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    sender: str
    text: str
    timestamp: datetime
