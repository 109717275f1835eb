"""Shared pytest fixtures: in-memory stores and fake adapters."""

import asyncio
import os

# Settings are read at import time
os.environ.setdefault("MONGO_URI", "")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("ENVIRONMENT", "test")

from collections.abc import Callable, Sequence  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402

from models.document import Document, Message  # noqa: E402
from services.errors import StoreError  # noqa: E402
from services.hints import MemoryHintStore  # noqa: E402
from services.session import SessionStateMachine  # noqa: E402
from services.store import InMemoryDocumentStore  # noqa: E402
from services.workspace import Workspace  # noqa: E402

OWNER = "owner-1"
PDF_BYTES = b"%PDF-1.4 fake test payload"


class FlakyStore(InMemoryDocumentStore):
    """In-memory store that can be told to fail and counts writes."""

    def __init__(self) -> None:
        super().__init__()
        self.failing: set[str] = set()
        self.calls: dict[str, int] = {"create": 0, "list": 0, "upsert": 0, "delete_all": 0}

    def _maybe_fail(self, op: str) -> None:
        self.calls[op] += 1
        if op in self.failing:
            raise StoreError(f"{op} unavailable")

    async def create(self, owner: str, document: Document) -> None:
        self._maybe_fail("create")
        await super().create(owner, document)

    async def list(self, owner: str) -> list[Document]:
        self._maybe_fail("list")
        return await super().list(owner)

    async def upsert(self, owner: str, document_id: str, fields: dict[str, Any]) -> None:
        self._maybe_fail("upsert")
        await super().upsert(owner, document_id, fields)

    async def delete_all(self, owner: str) -> None:
        self._maybe_fail("delete_all")
        await super().delete_all(owner)


class SlowStore(InMemoryDocumentStore):
    """In-memory store whose writes yield to the event loop before landing."""

    async def create(self, owner: str, document: Document) -> None:
        await asyncio.sleep(0.01)
        await super().create(owner, document)

    async def upsert(self, owner: str, document_id: str, fields: dict[str, Any]) -> None:
        await asyncio.sleep(0.01)
        await super().upsert(owner, document_id, fields)

    async def delete_all(self, owner: str) -> None:
        await asyncio.sleep(0.01)
        await super().delete_all(owner)


class FakeExtractor:
    def __init__(self, text: str = "Page one text\n\n", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[bytes] = []

    async def extract_text(self, pdf_bytes: bytes) -> str:
        self.calls.append(pdf_bytes)
        if self.error is not None:
            raise self.error
        return self.text


class FakeAnswerService:
    """Returns queued answers; an Exception in the queue is raised instead."""

    def __init__(self, *answers: str | Exception, gate: asyncio.Event | None = None) -> None:
        self.answers = list(answers) or ["An answer."]
        self.gate = gate
        self.calls: list[tuple[str, str]] = []

    async def generate_answer(self, context: str, question: str) -> str:
        self.calls.append((context, question))
        if self.gate is not None:
            await self.gate.wait()
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def hints() -> MemoryHintStore:
    return MemoryHintStore()


@pytest.fixture
def machine(store: FlakyStore, hints: MemoryHintStore) -> SessionStateMachine:
    return SessionStateMachine(OWNER, store, hints)


@pytest.fixture
async def ready_machine(machine: SessionStateMachine) -> SessionStateMachine:
    await machine.initialize()
    return machine


@pytest.fixture
def make_document() -> Callable[..., Document]:
    def _make(name: str = "report.pdf", text: str = "Some text.\n\n", transcript: Sequence[Message] = ()) -> Document:
        document = Document.new(name=name, content=PDF_BYTES, text=text)
        return document.model_copy(update={"transcript": list(transcript)})

    return _make


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def answer_service() -> FakeAnswerService:
    return FakeAnswerService("The revenue was $5M in 2023.")


@pytest.fixture
def make_workspace(
    store: FlakyStore, extractor: FakeExtractor, answer_service: FakeAnswerService
) -> Callable[..., Workspace]:
    hint_stores: dict[str, MemoryHintStore] = {}

    def _make(owner: str = OWNER) -> Workspace:
        hints = hint_stores.setdefault(owner, MemoryHintStore())
        return Workspace(owner, store, hints, extractor, answer_service)

    return _make
