"""
Error taxonomy shared by the pipeline, query engine and storage backends.

NotFound and InvalidArgument are client errors and reach the API boundary.
StorageFailure aborts the operation that hit it. ExtractionFailure stays
inside the pipeline.
"""


class DocVaultError(Exception):
    """Base class for all domain errors."""


class NotFound(DocVaultError):
    """Unknown document, tag, author id, username or blob ref."""


class InvalidArgument(DocVaultError):
    """Malformed sort field, blank title, bad paging values."""


class StorageFailure(DocVaultError):
    """Blob read/write/delete I/O error."""


class ExtractionFailure(DocVaultError):
    """Content processing failed. Caught and logged by the pipeline."""
