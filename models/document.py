import time
from datetime import datetime, timezone
from typing import List, Literal, Sequence

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    id: int
    role: Literal["user", "assistant"]
    text: str

    model_config = {"frozen": True}


class Document(BaseModel):
    id: str
    name: str
    content: bytes = Field(repr=False)  # original PDF payload
    text: str = Field(repr=False)  # page texts joined with the page boundary marker
    transcript: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def derive_id(cls, name: str, created_at: datetime) -> str:
        return f"{name}-{created_at.isoformat()}"

    @classmethod
    def new(cls, name: str, content: bytes, text: str) -> "Document":
        created_at = utcnow()
        return cls(
            id=cls.derive_id(name, created_at),
            name=name,
            content=content,
            text=text,
            created_at=created_at,
        )


def next_message_id(transcript: Sequence[Message]) -> int:
    """Millisecond timestamp, bumped past the last id so ids stay strictly increasing."""
    now_ms = time.time_ns() // 1_000_000
    if transcript:
        return max(now_ms, transcript[-1].id + 1)
    return now_ms


def make_message(transcript: Sequence[Message], role: Literal["user", "assistant"], text: str) -> Message:
    return Message(id=next_message_id(transcript), role=role, text=text)
