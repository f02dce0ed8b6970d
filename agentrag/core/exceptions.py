"""Error taxonomy for ingestion, retrieval and external calls."""


class AgentRAGError(Exception):
    """Base class for all agentrag errors."""


class DocumentNotFoundError(AgentRAGError, LookupError):
    def __init__(self, document_id) -> None:
        super().__init__(f"Document with ID {document_id} not found")
        self.document_id = document_id


class DocumentNotReadyError(AgentRAGError):
    """The document exists but hasn't reached the state the operation needs."""


class UnsupportedFormatError(AgentRAGError, ValueError):
    """No extractor exists for the MIME type. Not worth retrying."""

    def __init__(self, mime_type: str) -> None:
        super().__init__(f"Unsupported file type: {mime_type}")
        self.mime_type = mime_type


class ExtractionError(AgentRAGError):
    """An extractor (PDF, OCR, text read) failed on the stored file."""


class UnknownSourceTypeError(AgentRAGError, ValueError):
    def __init__(self, source_type: str) -> None:
        super().__init__(f"Unsupported source type: {source_type}")
        self.source_type = source_type


class ExternalCallError(AgentRAGError):
    """An embedding, completion or website call failed or timed out."""


class EmbeddingError(ExternalCallError):
    pass


class WebsiteFetchError(ExternalCallError):
    pass


class CompletionError(ExternalCallError):
    pass
