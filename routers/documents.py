import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response

from core.config import settings
from dependencies.workspace import get_workspace
from schemas.document import DeleteResponse, DocumentDetail, DocumentSummary, SessionOut
from services.errors import (
    DocumentNotFound,
    DuplicateName,
    InvalidType,
    StoreError,
    TooLarge,
    UnreadableError,
    UploadRejected,
)
from services.upload import UploadRequest
from services.workspace import Workspace

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_STATUS = {
    InvalidType: 415,
    TooLarge: 413,
    DuplicateName: 409,
    UnreadableError: 422,
}


def _get_document(workspace: Workspace, document_id: str):
    document = workspace.session.documents.get(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.get("", response_model=SessionOut)
async def get_session(workspace: Workspace = Depends(get_workspace)):
    """
    Current session: documents (without content), active document and status.
    `empty` is true when the owner has no documents yet.

    `last_error` is set when the store could not be read at load time; the
    session is then empty but usable.
    """
    return SessionOut.from_session(workspace.session)


@router.post("", response_model=DocumentSummary, status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    workspace: Workspace = Depends(get_workspace),
):
    """
    Upload a PDF, extract its text and make it the active document.

    - 415: not a PDF
    - 413: larger than MAX_FILE_SIZE_MB
    - 409: a document with the same name already exists
    - 422: the PDF could not be read
    """
    # At most one byte past the limit
    data = await file.read(settings.max_file_size_bytes + 1)
    request = UploadRequest(
        filename=file.filename or "",
        content_type=file.content_type,
        data=data,
        size=file.size if file.size is not None else len(data),
    )

    try:
        document = await workspace.upload(request)
    except UploadRejected as e:
        if e.is_fatal:
            logger.warning("Rejected upload %r: %s", request.filename, e.message)
        else:
            logger.info("Upload %r needs attention: %s", request.filename, e.message)
        raise HTTPException(status_code=UPLOAD_STATUS[type(e)], detail=e.message)
    except StoreError as e:
        logger.error("Upload of %r could not be saved: %s", request.filename, e.message)
        raise HTTPException(status_code=503, detail="Could not save the document. Please try again.")

    return DocumentSummary.from_document(document)


@router.delete("", response_model=DeleteResponse)
async def clear_all_documents(workspace: Workspace = Depends(get_workspace)):
    """Delete every document and transcript of the current owner."""
    try:
        await workspace.clear_all()
    except StoreError as e:
        logger.error("Clear all failed for owner %s: %s", workspace.owner, e.message)
        raise HTTPException(status_code=503, detail="Could not delete documents. Please try again.")
    return DeleteResponse(success=True, message="All documents deleted")


@router.get("/{document_id}", response_model=DocumentDetail)
async def get_document(document_id: str, workspace: Workspace = Depends(get_workspace)):
    return DocumentDetail.from_document(_get_document(workspace, document_id))


@router.get("/{document_id}/content")
async def get_document_content(document_id: str, workspace: Workspace = Depends(get_workspace)):
    """The original PDF, for display."""
    document = _get_document(workspace, document_id)
    return Response(
        content=document.content,
        media_type=settings.PDF_CONTENT_TYPE,
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(document.name)}"},
    )


@router.post("/{document_id}/select", response_model=DocumentDetail)
async def select_document(document_id: str, workspace: Workspace = Depends(get_workspace)):
    """Make a document active. An empty transcript gets its greeting here."""
    try:
        document = await workspace.select(document_id)
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Document not found")
    return DocumentDetail.from_document(document)
