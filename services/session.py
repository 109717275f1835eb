"""
Session state machine for one owner's documents.

Transitions are pure functions of (Session, input) -> Transition(new Session,
effects). `SessionStateMachine` performs the effects and commits the new
session using one policy everywhere: write-then-apply. Store effects run
first; if any raises StoreError the committed session is left as it was and
the error propagates to the caller. A failed clear is the exception: the
store may be partly emptied, so the session is reloaded from it before the
error propagates. Hint effects run after the commit and only log on failure.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Union

from models.document import Document, Message
from models.session import Session, SessionStatus
from services.errors import DocumentNotFound, DuplicateDocumentId, StoreError
from services.hints import HintStore
from services.store import DocumentStore

logger = logging.getLogger(__name__)


# ----- Effects -----

@dataclass(frozen=True)
class CreateDocument:
    document: Document


@dataclass(frozen=True)
class UpsertTranscript:
    document_id: str
    transcript: tuple


@dataclass(frozen=True)
class DeleteAllDocuments:
    pass


@dataclass(frozen=True)
class RememberActive:
    document_id: str


@dataclass(frozen=True)
class ForgetActive:
    pass


StoreEffect = Union[CreateDocument, UpsertTranscript, DeleteAllDocuments]
HintEffect = Union[RememberActive, ForgetActive]
Effect = Union[StoreEffect, HintEffect]


@dataclass
class Transition:
    session: Session
    effects: List[Effect] = field(default_factory=list)

    @property
    def store_effects(self) -> List[StoreEffect]:
        return [e for e in self.effects if isinstance(e, (CreateDocument, UpsertTranscript, DeleteAllDocuments))]

    @property
    def hint_effects(self) -> List[HintEffect]:
        return [e for e in self.effects if isinstance(e, (RememberActive, ForgetActive))]


# ----- Pure transitions -----

def begin_loading(session: Session) -> Session:
    return Session(owner=session.owner, status=SessionStatus.loading)


def loaded(owner: str, documents: Sequence[Document], hint: Optional[str]) -> Transition:
    """Build a ready session, restoring the hinted selection when it still exists."""
    by_id = {doc.id: doc for doc in documents}
    effects: List[Effect] = []
    if hint is not None and hint in by_id:
        active_id = hint
    elif by_id:
        active_id = next(iter(by_id))
        effects.append(RememberActive(active_id))
    else:
        active_id = None
    session = Session(owner=owner, status=SessionStatus.ready, documents=by_id, active_id=active_id)
    return Transition(session, effects)


def load_failed(owner: str, error: str) -> Session:
    return Session(owner=owner, status=SessionStatus.ready, last_error=error)


def register(session: Session, document: Document) -> Transition:
    if document.id in session.documents:
        raise DuplicateDocumentId(document.id)
    documents = {**session.documents, document.id: document}
    new_session = session.model_copy(update={"documents": documents, "active_id": document.id})
    return Transition(new_session, [CreateDocument(document), RememberActive(document.id)])


def select(session: Session, document_id: str) -> Transition:
    if document_id not in session.documents:
        raise DocumentNotFound(document_id)
    if session.active_id == document_id:
        return Transition(session)
    new_session = session.model_copy(update={"active_id": document_id})
    return Transition(new_session, [RememberActive(document_id)])


def replace_transcript(session: Session, document_id: str, messages: Sequence[Message]) -> Transition:
    """The caller hands over the full transcript, not a delta."""
    if document_id not in session.documents:
        raise DocumentNotFound(document_id)
    transcript = list(messages)
    document = session.documents[document_id].model_copy(update={"transcript": transcript})
    documents = {**session.documents, document_id: document}
    new_session = session.model_copy(update={"documents": documents})
    return Transition(new_session, [UpsertTranscript(document_id, tuple(transcript))])


def clear(session: Session) -> Transition:
    new_session = Session(owner=session.owner, status=session.status)
    return Transition(new_session, [DeleteAllDocuments(), ForgetActive()])


# ----- Machine -----

SessionListener = Callable[[Session], None]
TransitionBuilder = Callable[[Session], Transition]


class SessionStateMachine:
    """
    Owns the committed Session for one owner and mediates every store write.

    Mutations are serialized: each transition is built from the session
    committed at the time it acquires the lock, and its effects and commit
    run before the next mutation starts.
    """

    def __init__(self, owner: str, store: DocumentStore, hints: HintStore):
        self.owner = owner
        self.store = store
        self.hints = hints
        self.session = Session(owner=owner)
        self._listeners: List[SessionListener] = []
        self._lock = asyncio.Lock()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener called after every committed mutation."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def initialize(self) -> Session:
        async with self._lock:
            self._commit(begin_loading(self.session))
            try:
                documents = await self.store.list(self.owner)
            except StoreError as e:
                logger.error("Could not load documents for owner %s: %s", self.owner, e.message)
                self._commit(load_failed(self.owner, e.message))
                return self.session

            try:
                hint = await self.hints.get()
            except StoreError as e:
                logger.warning("Could not read active hint for owner %s: %s", self.owner, e.message)
                hint = None

            return await self._apply(loaded(self.owner, documents, hint))

    async def register_document(self, document: Document) -> Session:
        session = await self._run(lambda s: register(s, document))
        logger.info("Registered document %s for owner %s", document.id, self.owner)
        return session

    async def select_document(self, document_id: str) -> Session:
        return await self._run(lambda s: select(s, document_id))

    async def append_transcript(self, document_id: str, messages: Sequence[Message]) -> Session:
        return await self._run(lambda s: replace_transcript(s, document_id, messages))

    async def clear_all(self) -> Session:
        async with self._lock:
            try:
                session = await self._apply(clear(self.session))
            except StoreError:
                # Some records may already be gone
                await self._reload()
                raise
        logger.info("Cleared all documents for owner %s", self.owner)
        return session

    async def _run(self, build: TransitionBuilder) -> Session:
        async with self._lock:
            return await self._apply(build(self.session))

    async def _reload(self) -> None:
        try:
            documents = await self.store.list(self.owner)
        except StoreError as e:
            logger.error("Could not reload documents for owner %s: %s", self.owner, e.message)
            return
        await self._apply(loaded(self.owner, documents, self.session.active_id))

    async def _apply(self, transition: Transition) -> Session:
        if not transition.effects and transition.session is self.session:
            return self.session

        for effect in transition.store_effects:
            await self._apply_store_effect(effect)

        self._commit(transition.session)

        for effect in transition.hint_effects:
            try:
                if isinstance(effect, RememberActive):
                    await self.hints.set(effect.document_id)
                else:
                    await self.hints.clear()
            except StoreError as e:
                logger.warning("Could not update active hint for owner %s: %s", self.owner, e.message)

        return self.session

    async def _apply_store_effect(self, effect: StoreEffect) -> None:
        if isinstance(effect, CreateDocument):
            await self.store.create(self.owner, effect.document)
        elif isinstance(effect, UpsertTranscript):
            await self.store.upsert(
                self.owner,
                effect.document_id,
                {"transcript": [m.model_dump() for m in effect.transcript]},
            )
        else:
            await self.store.delete_all(self.owner)

    def _commit(self, session: Session) -> None:
        if session.active_id is not None and session.active_id not in session.documents:
            raise RuntimeError(f"active_id {session.active_id!r} is not a registered document")
        self.session = session
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                logger.exception("Session listener failed for owner %s", self.owner)
