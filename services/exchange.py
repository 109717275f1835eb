"""
Question-answer exchange against the active document.

Single-flight per document: while an exchange is pending, further questions
for that document are turned away with status `busy`. The pending working
transcript (prior messages + the user's question) is visible through
`working_transcript` until the exchange resolves.
"""
import asyncio
import logging
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from core.config import settings
from models.document import Message, make_message
from pdf_services.llm import AnswerService
from services.errors import DocumentNotFound, GenerationError
from services.session import SessionStateMachine

logger = logging.getLogger(__name__)


class ExchangeStatus(str, Enum):
    answered = "answered"
    apologized = "apologized"
    ignored = "ignored"
    busy = "busy"
    discarded = "discarded"


class ExchangeOutcome(BaseModel):
    status: ExchangeStatus
    document_id: Optional[str] = None
    transcript: List[Message] = Field(default_factory=list)
    reason: Optional[str] = None


class QuestionAnswerExchange:
    def __init__(
        self,
        machine: SessionStateMachine,
        answer_service: AnswerService,
        timeout: float = settings.ANSWER_TIMEOUT_SECONDS,
        greeting_template: str = settings.GREETING_TEMPLATE,
        apology_text: str = settings.APOLOGY_TEXT,
    ):
        self.machine = machine
        self.answer_service = answer_service
        self.timeout = timeout
        self.greeting_template = greeting_template
        self.apology_text = apology_text
        self._pending: Dict[str, List[Message]] = {}

    def is_busy(self, document_id: str) -> bool:
        return document_id in self._pending

    def has_pending(self) -> bool:
        return bool(self._pending)

    def working_transcript(self, document_id: str) -> Optional[List[Message]]:
        pending = self._pending.get(document_id)
        return list(pending) if pending is not None else None

    async def greet(self, document_id: str) -> Optional[Message]:
        """Persist a greeting as the first message of an empty transcript."""
        document = self.machine.session.documents.get(document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        if document.transcript or self.is_busy(document_id):
            return None

        greeting = make_message([], "assistant", self.greeting_template.format(name=document.name))
        # Holds the document's slot so a question cannot overwrite the greeting
        self._pending[document_id] = [greeting]
        try:
            await self.machine.append_transcript(document_id, [greeting])
        finally:
            self._pending.pop(document_id, None)
        return greeting

    async def ask(self, question: str) -> ExchangeOutcome:
        question = (question or "").strip()
        document = self.machine.session.active_document
        if not question:
            return ExchangeOutcome(status=ExchangeStatus.ignored, reason="Question is empty")
        if document is None:
            return ExchangeOutcome(status=ExchangeStatus.ignored, reason="No active document")
        if not document.text.strip():
            return ExchangeOutcome(
                status=ExchangeStatus.ignored,
                document_id=document.id,
                reason="Document has no extractable text",
            )
        if self.is_busy(document.id):
            return ExchangeOutcome(
                status=ExchangeStatus.busy,
                document_id=document.id,
                transcript=self.working_transcript(document.id),
                reason="An answer is already being generated for this document",
            )

        working = document.transcript + [make_message(document.transcript, "user", question)]
        self._pending[document.id] = working
        try:
            try:
                answer = await asyncio.wait_for(
                    self.answer_service.generate_answer(document.text, question),
                    timeout=self.timeout,
                )
                status = ExchangeStatus.answered
            except (GenerationError, asyncio.TimeoutError) as e:
                logger.warning("Answer generation failed for document %s: %s", document.id, e)
                answer = self.apology_text
                status = ExchangeStatus.apologized

            working.append(make_message(working, "assistant", answer))

            try:
                await self.machine.append_transcript(document.id, working)
            except DocumentNotFound:
                # Session was cleared or reloaded while we waited
                logger.info("Dropping late answer for removed document %s", document.id)
                return ExchangeOutcome(status=ExchangeStatus.discarded, document_id=document.id)

            return ExchangeOutcome(status=status, document_id=document.id, transcript=list(working))
        finally:
            self._pending.pop(document.id, None)
