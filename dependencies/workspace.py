from typing import Optional

from fastapi import Depends

import db.mongo as mongo
from dependencies.auth import get_current_owner
from models.owner import Owner
from pdf_services.llm import get_answer_service
from pdf_services.pdf_processor import PDFProcessor
from services.hints import MemoryHintStore, MongoHintStore
from services.store import InMemoryDocumentStore, MongoDocumentStore
from services.workspace import Workspace, WorkspaceRegistry

_registry: Optional[WorkspaceRegistry] = None
_memory_store: Optional[InMemoryDocumentStore] = None


def build_workspace(owner: str) -> Workspace:
    """Mongo-backed when connected, otherwise an in-process store."""
    global _memory_store
    if mongo.is_connected():
        database = mongo.get_database()
        store = MongoDocumentStore(database)
        hints = MongoHintStore(database, owner)
    else:
        if _memory_store is None:
            _memory_store = InMemoryDocumentStore()
        store = _memory_store
        hints = MemoryHintStore()
    return Workspace(
        owner=owner,
        store=store,
        hints=hints,
        extractor=PDFProcessor(),
        answer_service=get_answer_service(),
    )


def get_registry() -> WorkspaceRegistry:
    global _registry
    if _registry is None:
        _registry = WorkspaceRegistry(build_workspace)
    return _registry


async def get_workspace(
    owner: Owner = Depends(get_current_owner),
    registry: WorkspaceRegistry = Depends(get_registry),
) -> Workspace:
    return await registry.get(owner.id)
