"""Tests for per-owner workspaces and the registry."""

import asyncio
from collections.abc import Callable

from conftest import OWNER, PDF_BYTES, FakeAnswerService, FakeExtractor, FlakyStore
from services.hints import MemoryHintStore
from services.store import InMemoryDocumentStore
from core.config import settings
from models.document import Document
from services.exchange import ExchangeStatus
from services.upload import UploadRequest
from services.workspace import Workspace, WorkspaceRegistry


def _upload(name: str) -> UploadRequest:
    return UploadRequest(filename=name, content_type="application/pdf", data=PDF_BYTES)


async def test_upload_greets_new_document(make_workspace: Callable[..., Workspace]) -> None:
    workspace = make_workspace()
    await workspace.open()

    document = await workspace.upload(_upload("annual-report.pdf"))

    [greeting] = document.transcript
    assert greeting.role == "assistant"
    assert greeting.text == settings.GREETING_TEMPLATE.format(name="annual-report.pdf")
    assert workspace.session.active_id == document.id


async def test_select_and_reopen_do_not_greet_twice(
    make_workspace: Callable[..., Workspace], store: FlakyStore
) -> None:
    workspace = make_workspace()
    await workspace.open()
    first = await workspace.upload(_upload("a.pdf"))
    await workspace.upload(_upload("b.pdf"))

    selected = await workspace.select(first.id)
    reopened = make_workspace()
    await reopened.open()

    assert len(selected.transcript) == 1
    assert reopened.session.active_id == first.id
    assert len(reopened.session.documents[first.id].transcript) == 1
    assert store.calls["upsert"] == 2


async def test_open_greets_restored_document_without_transcript(
    make_workspace: Callable[..., Workspace], store: FlakyStore, make_document: Callable[..., Document]
) -> None:
    doc = make_document("legacy.pdf")
    await store.create(OWNER, doc)
    workspace = make_workspace()

    await workspace.open()

    assert len(workspace.session.documents[doc.id].transcript) == 1


async def test_greeting_store_failure_is_not_fatal(
    make_workspace: Callable[..., Workspace], store: FlakyStore
) -> None:
    workspace = make_workspace()
    await workspace.open()
    store.failing.add("upsert")

    document = await workspace.upload(_upload("a.pdf"))

    assert document.transcript == []
    assert workspace.session.active_id == document.id

    store.failing.clear()
    selected = await workspace.select(document.id)
    assert len(selected.transcript) == 1


async def test_ask_through_workspace(
    make_workspace: Callable[..., Workspace], answer_service: FakeAnswerService
) -> None:
    workspace = make_workspace()
    await workspace.open()
    await workspace.upload(_upload("acme.pdf"))

    outcome = await workspace.ask("What was the revenue?")

    assert outcome.status is ExchangeStatus.answered
    assert [m.role for m in outcome.transcript] == ["assistant", "user", "assistant"]
    assert answer_service.calls[0][1] == "What was the revenue?"


async def test_registry_reuses_workspace(make_workspace: Callable[..., Workspace]) -> None:
    registry = WorkspaceRegistry(make_workspace)

    first = await registry.get("alice")
    second = await registry.get("alice")
    other = await registry.get("bob")

    assert first is second
    assert other is not first
    assert "alice" in registry


async def test_discard_reloads_from_store(make_workspace: Callable[..., Workspace]) -> None:
    registry = WorkspaceRegistry(make_workspace)
    workspace = await registry.get("alice")
    document = await workspace.upload(_upload("a.pdf"))

    assert registry.discard("alice") is workspace
    assert "alice" not in registry
    assert registry.discard("alice") is None

    fresh = await registry.get("alice")
    assert fresh is not workspace
    assert fresh.session.active_id == document.id
    assert fresh.session.documents[document.id].transcript == document.transcript


class GatedStore(InMemoryDocumentStore):
    """Listing for one owner waits until the gate opens."""

    def __init__(self, gated_owner: str) -> None:
        super().__init__()
        self.gated_owner = gated_owner
        self.gate = asyncio.Event()

    async def list(self, owner: str) -> list[Document]:
        if owner == self.gated_owner:
            await self.gate.wait()
        return await super().list(owner)


async def test_slow_load_does_not_block_other_owners() -> None:
    store = GatedStore("slow")

    def factory(owner: str) -> Workspace:
        return Workspace(owner, store, MemoryHintStore(), FakeExtractor(), FakeAnswerService())

    registry = WorkspaceRegistry(factory)
    slow = asyncio.create_task(registry.get("slow"))
    await asyncio.sleep(0)

    fast = await asyncio.wait_for(registry.get("fast"), timeout=1)

    assert fast.owner == "fast"
    assert not slow.done()
    store.gate.set()
    assert (await slow).owner == "slow"
    assert len(registry) == 2


async def test_concurrent_gets_for_one_owner_share_a_workspace(
    make_workspace: Callable[..., Workspace], store: FlakyStore
) -> None:
    registry = WorkspaceRegistry(make_workspace)

    first, second = await asyncio.gather(registry.get("alice"), registry.get("alice"))

    assert first is second
    assert store.calls["list"] == 1


async def test_least_recently_used_workspace_is_evicted(make_workspace: Callable[..., Workspace]) -> None:
    registry = WorkspaceRegistry(make_workspace, max_open=2)
    alice = await registry.get("alice")
    await alice.upload(_upload("a.pdf"))
    await registry.get("bob")
    await registry.get("alice")

    await registry.get("carol")

    assert "bob" not in registry
    assert "alice" in registry
    assert len(registry) == 2


async def test_evicted_owner_reloads_from_store(make_workspace: Callable[..., Workspace]) -> None:
    registry = WorkspaceRegistry(make_workspace, max_open=1)
    alice = await registry.get("alice")
    document = await alice.upload(_upload("a.pdf"))

    await registry.get("bob")
    assert "alice" not in registry
    assert len(registry) == 1

    reloaded = await registry.get("alice")
    assert reloaded is not alice
    assert reloaded.session.active_id == document.id
    assert reloaded.session.documents[document.id].transcript == document.transcript


async def test_workspace_with_answer_in_flight_is_not_evicted(
    make_workspace: Callable[..., Workspace], answer_service: FakeAnswerService
) -> None:
    answer_service.gate = asyncio.Event()
    registry = WorkspaceRegistry(make_workspace, max_open=1)
    alice = await registry.get("alice")
    await alice.upload(_upload("a.pdf"))
    asking = asyncio.create_task(alice.ask("What was the revenue?"))
    while not answer_service.calls:
        await asyncio.sleep(0)

    await registry.get("bob")

    assert "alice" in registry
    assert "bob" in registry

    answer_service.gate.set()
    outcome = await asking
    assert outcome.status is ExchangeStatus.answered

    await registry.get("carol")
    assert "alice" not in registry
    assert "bob" not in registry
    assert len(registry) == 1
