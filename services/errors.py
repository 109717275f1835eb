"""
Error taxonomy for the document session core.

Upload-time rejections are user-correctable and leave the session untouched.
GenerationError never leaves the exchange; it becomes an apology message.
StoreError is raised to whoever issued the mutating operation.
"""


class PDFQueryError(Exception):
    """Base class for all domain errors."""

    message = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


# ----- Upload -----

class UploadRejected(PDFQueryError):
    """An upload failed validation or extraction. Nothing was registered."""

    is_fatal = True


class InvalidType(UploadRejected):
    message = "Invalid file type. Please upload a PDF."


class TooLarge(UploadRejected):
    def __init__(self, max_size_mb: int):
        self.max_size_mb = max_size_mb
        super().__init__(f"File size exceeds {max_size_mb}MB. Please upload a smaller file.")


class DuplicateName(UploadRejected):
    is_fatal = False

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'A file named "{name}" has already been uploaded.')


class UnreadableError(UploadRejected):
    message = "Could not read the PDF file. It might be corrupted or protected."


# ----- Exchange -----

class GenerationError(PDFQueryError):
    message = "Answer generation failed"


# ----- Session / store -----

class StoreError(PDFQueryError):
    message = "Document store is unavailable"


class DocumentNotFound(PDFQueryError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class DuplicateDocumentId(PDFQueryError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document already registered: {document_id}")
