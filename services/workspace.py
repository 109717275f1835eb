"""
Per-owner workspaces.

A Workspace wires the session machine, upload pipeline and exchange for one
owner. The registry keeps one workspace per owner and drops it on sign-out
or eviction, so an identity change always starts from a freshly loaded
session.
"""
import asyncio
import logging
from collections import OrderedDict
from typing import Callable, Dict, Optional

from core.config import settings
from models.document import Document
from models.session import Session, SessionStatus
from pdf_services.llm import AnswerService
from services.errors import StoreError
from services.exchange import ExchangeOutcome, QuestionAnswerExchange
from services.hints import HintStore
from services.session import SessionStateMachine
from services.store import DocumentStore
from services.upload import TextExtractor, UploadPipeline, UploadRequest

logger = logging.getLogger(__name__)


class Workspace:
    def __init__(
        self,
        owner: str,
        store: DocumentStore,
        hints: HintStore,
        extractor: TextExtractor,
        answer_service: AnswerService,
    ):
        self.owner = owner
        self.machine = SessionStateMachine(owner, store, hints)
        self.uploads = UploadPipeline(self.machine, extractor)
        self.exchange = QuestionAnswerExchange(self.machine, answer_service)
        self.machine.subscribe(self._log_change)

    @property
    def session(self) -> Session:
        return self.machine.session

    async def open(self) -> Session:
        await self.machine.initialize()
        await self._greet_active()
        return self.session

    async def upload(self, request: UploadRequest) -> Document:
        document = await self.uploads.upload(request)
        await self._greet_active()
        return self.session.documents[document.id]

    async def select(self, document_id: str) -> Document:
        await self.machine.select_document(document_id)
        await self._greet_active()
        return self.session.documents[document_id]

    async def ask(self, question: str) -> ExchangeOutcome:
        return await self.exchange.ask(question)

    async def clear_all(self) -> Session:
        return await self.machine.clear_all()

    async def _greet_active(self) -> None:
        if self.session.active_id is None:
            return
        try:
            await self.exchange.greet(self.session.active_id)
        except StoreError as e:
            # Retried on the next select
            logger.warning("Could not save greeting for document %s: %s", self.session.active_id, e.message)

    def _log_change(self, session: Session) -> None:
        logger.debug(
            "Session %s: status=%s documents=%d active=%s",
            session.owner, session.status.value, len(session.documents), session.active_id,
        )


WorkspaceFactory = Callable[[str], Workspace]


class WorkspaceRegistry:
    """
    Open workspaces, one per owner, least recently used first.

    Loading holds only the owner's own lock. Past `max_open` workspaces the
    least recently used idle one is evicted; its documents stay in the store
    and are reloaded on the owner's next request.
    """

    def __init__(self, factory: WorkspaceFactory, max_open: int = settings.MAX_OPEN_WORKSPACES):
        self.factory = factory
        self.max_open = max_open
        self._workspaces: "OrderedDict[str, Workspace]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}

    async def get(self, owner: str) -> Workspace:
        """Return the owner's workspace, loading it on first use."""
        lock = self._locks.setdefault(owner, asyncio.Lock())
        async with lock:
            workspace = self._workspaces.get(owner)
            if workspace is None:
                workspace = self.factory(owner)
                await workspace.open()
                self._workspaces[owner] = workspace
                logger.info("Opened workspace for owner %s", owner)
            elif workspace.session.status is SessionStatus.uninitialized:
                await workspace.open()
            self._workspaces.move_to_end(owner)
        self._evict(keep=owner)
        return workspace

    def discard(self, owner: str) -> Optional[Workspace]:
        workspace = self._workspaces.pop(owner, None)
        self._drop_lock(owner)
        if workspace is not None:
            logger.info("Discarded workspace for owner %s", owner)
        return workspace

    def _evict(self, keep: str) -> None:
        excess = len(self._workspaces) - self.max_open
        if excess <= 0:
            return
        for owner, workspace in list(self._workspaces.items()):
            if excess <= 0:
                break
            # The requested workspace and those with an answer or a load in flight stay
            lock = self._locks.get(owner)
            if owner == keep or workspace.exchange.has_pending() or (lock is not None and lock.locked()):
                continue
            del self._workspaces[owner]
            self._drop_lock(owner)
            excess -= 1
            logger.info("Evicted idle workspace for owner %s", owner)

    def _drop_lock(self, owner: str) -> None:
        lock = self._locks.get(owner)
        if lock is not None and not lock.locked():
            del self._locks[owner]

    def __contains__(self, owner: str) -> bool:
        return owner in self._workspaces

    def __len__(self) -> int:
        return len(self._workspaces)
