"""Exceptions raised by the import pipeline services."""


class BulkImportError(Exception):
    """Base class for import pipeline failures."""


class NotFoundError(BulkImportError, LookupError):
    """Unknown job or template id."""


class FileRejectedError(BulkImportError, ValueError):
    """Uploaded file refused before storage (size or content type)."""

    def __init__(self, message: str, *, too_large: bool = False):
        super().__init__(message)
        self.too_large = too_large


class WorkbookError(BulkImportError, ValueError):
    """Bytes could not be decoded as a workbook, or the workbook is empty."""


class FileRetrievalError(BulkImportError):
    """Object storage could not return the requested file."""


class PotentialDuplicateError(BulkImportError):
    """A row's name is too close to an existing employee to import under `skip`."""


class JobStateError(BulkImportError):
    """Attempted to change a job that has already reached `done` or `failed`."""
