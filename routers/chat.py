import logging

from fastapi import APIRouter, Depends, HTTPException

from dependencies.workspace import get_workspace
from schemas.document import AskRequest, AskResponse, MessageOut, TranscriptOut
from services.errors import StoreError
from services.exchange import ExchangeStatus
from services.workspace import Workspace

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/chat", response_model=TranscriptOut)
async def get_active_transcript(workspace: Workspace = Depends(get_workspace)):
    """
    Transcript of the active document.

    While an answer is being generated this returns the working copy, which
    already includes the pending question, and `pending` is true.
    """
    document = workspace.session.active_document
    if document is None:
        return TranscriptOut()

    working = workspace.exchange.working_transcript(document.id)
    messages = working if working is not None else workspace.session.transcript(document.id)
    return TranscriptOut(
        document_id=document.id,
        pending=working is not None,
        messages=[MessageOut.from_message(m) for m in messages],
    )


@router.post("/chat", response_model=AskResponse)
async def ask_question(payload: AskRequest, workspace: Workspace = Depends(get_workspace)):
    """
    Ask a question about the active document.

    Request body:
    ```json
    {
        "question": "What was the revenue?"
    }
    ```

    `status` is `answered`, or `apologized` when the model failed (the
    apology is part of the saved transcript). A question sent while another
    one is still being answered gets 409; an empty question or a missing
    active document gets 400.
    """
    try:
        outcome = await workspace.ask(payload.question)
    except StoreError as e:
        logger.error("Transcript for owner %s could not be saved: %s", workspace.owner, e.message)
        raise HTTPException(status_code=503, detail="Could not save the conversation. Please try again.")

    if outcome.status is ExchangeStatus.busy:
        raise HTTPException(status_code=409, detail=outcome.reason)
    if outcome.status is ExchangeStatus.ignored:
        raise HTTPException(status_code=400, detail=outcome.reason)
    if outcome.status is ExchangeStatus.discarded:
        raise HTTPException(status_code=410, detail="Document was removed before the answer arrived")

    return AskResponse.from_outcome(outcome)
