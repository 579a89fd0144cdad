# core/errors.py


class ReportError(Exception):
    """Base class for every failure raised by the report pipeline."""


class PreconditionError(ReportError, ValueError):
    """Composition was asked for with incomplete line items, bank details or profile."""


class UnsupportedMediaTypeError(ReportError, ValueError):
    def __init__(self, name: str, media_type: str):
        super().__init__(f"Unsupported file type '{media_type}' for {name}. Use an image or a PDF.")
        self.name = name
        self.media_type = media_type


class RasterizationError(ReportError):
    """A source file could not be decoded or rendered."""


class BuilderStateError(ReportError, RuntimeError):
    """The document builder was driven backwards or after finalization."""


class ExtractionError(ReportError):
    def __init__(self, message: str, filename: str = ""):
        super().__init__(f"{message} ({filename})" if filename else message)
        self.filename = filename


class GenerationInProgressError(ReportError, RuntimeError):
    """A report is already being generated for this session."""
