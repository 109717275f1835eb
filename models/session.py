from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.document import Document, Message


class SessionStatus(str, Enum):
    uninitialized = "uninitialized"
    loading = "loading"
    ready = "ready"


class Session(BaseModel):
    """
    Snapshot of one owner's documents and selection.

    Treated as immutable: transitions build a new Session rather than
    mutating this one. `active_id` is either None or a key of `documents`.
    """

    owner: str
    status: SessionStatus = SessionStatus.uninitialized
    documents: Dict[str, Document] = Field(default_factory=dict)
    active_id: Optional[str] = None
    last_error: Optional[str] = None

    @property
    def active_document(self) -> Optional[Document]:
        if self.active_id is None:
            return None
        return self.documents.get(self.active_id)

    @property
    def names(self) -> set[str]:
        return {doc.name for doc in self.documents.values()}

    @property
    def is_empty(self) -> bool:
        return not self.documents

    def transcript(self, document_id: str) -> List[Message]:
        return list(self.documents[document_id].transcript)
