"""Pydantic DTOs exchanged between the completion client and its callers."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class Role(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConversationTurn(BaseModel):
    """A single message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    def to_api(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class ModelInfo(BaseModel):
    """Status-display information for the active model."""

    name: str
    status: str
    description: str
