from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from models.document import Document, Message
from models.session import Session
from services.exchange import ExchangeOutcome


class MessageOut(BaseModel):
    id: int
    role: Literal["user", "assistant"]
    text: str

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(id=message.id, role=message.role, text=message.text)


class DocumentSummary(BaseModel):
    id: str
    name: str
    created_at: datetime
    message_count: int
    size: int

    @classmethod
    def from_document(cls, document: Document) -> "DocumentSummary":
        return cls(
            id=document.id,
            name=document.name,
            created_at=document.created_at,
            message_count=len(document.transcript),
            size=len(document.content),
        )


class DocumentDetail(DocumentSummary):
    text: str
    transcript: List[MessageOut]

    @classmethod
    def from_document(cls, document: Document) -> "DocumentDetail":
        summary = DocumentSummary.from_document(document)
        return cls(
            **summary.model_dump(),
            text=document.text,
            transcript=[MessageOut.from_message(m) for m in document.transcript],
        )


class SessionOut(BaseModel):
    owner_id: str
    status: str
    active_id: Optional[str] = None
    documents: List[DocumentSummary]
    empty: bool
    last_error: Optional[str] = None

    @classmethod
    def from_session(cls, session: Session) -> "SessionOut":
        return cls(
            owner_id=session.owner,
            status=session.status.value,
            active_id=session.active_id,
            documents=[DocumentSummary.from_document(d) for d in session.documents.values()],
            empty=session.is_empty,
            last_error=session.last_error,
        )


class TranscriptOut(BaseModel):
    document_id: Optional[str] = None
    pending: bool = False
    messages: List[MessageOut] = Field(default_factory=list)


class AskRequest(BaseModel):
    question: str


class AskResponse(BaseModel):
    status: str
    document_id: Optional[str] = None
    messages: List[MessageOut] = Field(default_factory=list)
    reason: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: ExchangeOutcome) -> "AskResponse":
        return cls(
            status=outcome.status.value,
            document_id=outcome.document_id,
            messages=[MessageOut.from_message(m) for m in outcome.transcript],
            reason=outcome.reason,
        )


class DeleteResponse(BaseModel):
    success: bool
    message: str
