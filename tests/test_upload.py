"""Tests for upload validation and registration."""

from collections.abc import Callable

import pytest

from conftest import PDF_BYTES, FakeExtractor, FlakyStore
from models.document import Document
from services.errors import DuplicateName, InvalidType, StoreError, TooLarge, UnreadableError
from services.session import SessionStateMachine
from services.upload import UploadPipeline, UploadRequest

MIB = 1024 * 1024


def _request(
    filename: str = "report.pdf",
    content_type: str | None = "application/pdf",
    size: int | None = None,
) -> UploadRequest:
    return UploadRequest(filename=filename, content_type=content_type, data=PDF_BYTES, size=size)


async def test_upload_registers_and_activates_document(
    ready_machine: SessionStateMachine, extractor: FakeExtractor
) -> None:
    pipeline = UploadPipeline(ready_machine, extractor)

    document = await pipeline.upload(_request())

    assert document.name == "report.pdf"
    assert document.id.startswith("report.pdf-")
    assert document.text == extractor.text
    assert document.content == PDF_BYTES
    assert document.transcript == []
    assert ready_machine.session.active_id == document.id
    assert extractor.calls == [PDF_BYTES]


@pytest.mark.parametrize("content_type", ["text/plain", "image/png", None, "application/x-pdf"])
async def test_non_pdf_rejected(
    ready_machine: SessionStateMachine, extractor: FakeExtractor, content_type: str | None
) -> None:
    pipeline = UploadPipeline(ready_machine, extractor)

    with pytest.raises(InvalidType) as exc:
        await pipeline.upload(_request(content_type=content_type))

    assert exc.value.message == "Invalid file type. Please upload a PDF."
    assert ready_machine.session.is_empty
    assert extractor.calls == []


async def test_oversized_file_rejected(
    ready_machine: SessionStateMachine, extractor: FakeExtractor
) -> None:
    pipeline = UploadPipeline(ready_machine, extractor)

    with pytest.raises(TooLarge) as exc:
        await pipeline.upload(_request(size=20 * MIB + 1))

    assert exc.value.message == "File size exceeds 20MB. Please upload a smaller file."
    assert ready_machine.session.is_empty
    assert extractor.calls == []


async def test_file_at_size_limit_accepted(
    ready_machine: SessionStateMachine, extractor: FakeExtractor
) -> None:
    pipeline = UploadPipeline(ready_machine, extractor)

    await pipeline.upload(_request(size=20 * MIB))

    assert len(ready_machine.session.documents) == 1


async def test_configured_limit_is_used(
    ready_machine: SessionStateMachine, extractor: FakeExtractor
) -> None:
    pipeline = UploadPipeline(ready_machine, extractor, max_size_mb=1)

    with pytest.raises(TooLarge) as exc:
        await pipeline.upload(_request(size=MIB + 1))

    assert exc.value.max_size_mb == 1


async def test_duplicate_name_rejected_before_session(
    ready_machine: SessionStateMachine, store: FlakyStore, extractor: FakeExtractor
) -> None:
    pipeline = UploadPipeline(ready_machine, extractor)
    first = await pipeline.upload(_request())

    with pytest.raises(DuplicateName) as exc:
        await pipeline.upload(_request())

    assert exc.value.is_fatal is False
    assert exc.value.message == 'A file named "report.pdf" has already been uploaded.'
    assert list(ready_machine.session.documents) == [first.id]
    assert store.calls["create"] == 1
    assert len(extractor.calls) == 1


async def test_duplicate_check_is_case_sensitive(
    ready_machine: SessionStateMachine, extractor: FakeExtractor
) -> None:
    pipeline = UploadPipeline(ready_machine, extractor)
    await pipeline.upload(_request("report.pdf"))

    await pipeline.upload(_request("Report.pdf"))

    assert len(ready_machine.session.documents) == 2


async def test_validation_order_type_before_size_before_name(
    ready_machine: SessionStateMachine,
    extractor: FakeExtractor,
    make_document: Callable[..., Document],
) -> None:
    await ready_machine.register_document(make_document("report.pdf"))
    pipeline = UploadPipeline(ready_machine, extractor)

    with pytest.raises(InvalidType):
        await pipeline.upload(_request(content_type="text/plain", size=50 * MIB))
    with pytest.raises(TooLarge):
        await pipeline.upload(_request(size=50 * MIB))
    with pytest.raises(DuplicateName):
        await pipeline.upload(_request())


async def test_unreadable_pdf_leaves_session_untouched(
    ready_machine: SessionStateMachine, store: FlakyStore
) -> None:
    pipeline = UploadPipeline(ready_machine, FakeExtractor(error=UnreadableError()))

    with pytest.raises(UnreadableError) as exc:
        await pipeline.upload(_request())

    assert exc.value.message == "Could not read the PDF file. It might be corrupted or protected."
    assert ready_machine.session.is_empty
    assert store.calls["create"] == 0


async def test_store_failure_is_raised(
    ready_machine: SessionStateMachine, store: FlakyStore, extractor: FakeExtractor
) -> None:
    store.failing.add("create")
    pipeline = UploadPipeline(ready_machine, extractor)

    with pytest.raises(StoreError):
        await pipeline.upload(_request())

    assert ready_machine.session.is_empty


def test_declared_size_falls_back_to_payload_length() -> None:
    assert _request(size=None).declared_size == len(PDF_BYTES)
    assert _request(size=123).declared_size == 123
