"""
Upload pipeline: validate an incoming file, extract its text and register it.

Checks run in a fixed order and stop at the first failure: type, size,
duplicate name. Nothing touches the session until extraction succeeds.
"""
import logging
from typing import Optional, Protocol

from pydantic import BaseModel

from core.config import settings
from models.document import Document
from services.errors import DuplicateName, InvalidType, TooLarge
from services.session import SessionStateMachine

logger = logging.getLogger(__name__)


class TextExtractor(Protocol):
    async def extract_text(self, pdf_bytes: bytes) -> str: ...


class UploadRequest(BaseModel):
    filename: str
    content_type: Optional[str]
    data: bytes
    size: Optional[int] = None

    @property
    def declared_size(self) -> int:
        return self.size if self.size is not None else len(self.data)


class UploadPipeline:
    def __init__(
        self,
        machine: SessionStateMachine,
        extractor: TextExtractor,
        max_size_mb: int = settings.MAX_FILE_SIZE_MB,
        content_type: str = settings.PDF_CONTENT_TYPE,
    ):
        self.machine = machine
        self.extractor = extractor
        self.max_size_mb = max_size_mb
        self.content_type = content_type

    @property
    def max_size_bytes(self) -> int:
        return self.max_size_mb * 1024 * 1024

    def validate(self, request: UploadRequest) -> None:
        if request.content_type != self.content_type:
            raise InvalidType()
        if request.declared_size > self.max_size_bytes:
            raise TooLarge(self.max_size_mb)
        # Checked against the names registered right now, not a snapshot
        if request.filename in self.machine.session.names:
            raise DuplicateName(request.filename)

    async def upload(self, request: UploadRequest) -> Document:
        self.validate(request)

        text = await self.extractor.extract_text(request.data)
        document = Document.new(name=request.filename, content=request.data, text=text)

        await self.machine.register_document(document)
        logger.info("Processed %r (%d bytes) into document %s", request.filename, len(request.data), document.id)
        return document
