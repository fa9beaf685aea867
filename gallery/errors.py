"""Gallery error taxonomy.

Every failure the core raises derives from ``GalleryError`` so the HTTP
layer can map it to a status code and a JSON body in one place.
"""

from typing import Any, Optional


class GalleryError(Exception):
    code = "gallery_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class ValidationError(GalleryError):
    """Bad input, rejected before any store was touched."""

    code = "validation_error"


class NotFound(GalleryError):
    code = "not_found"

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class Unauthorized(GalleryError):
    code = "unauthorized"


class StoreUnavailable(GalleryError):
    """A backend could not be reached or timed out."""

    code = "store_unavailable"

    def __init__(self, store: str, message: str):
        super().__init__(f"{store} unavailable: {message}")
        self.store = store


class PartialFailure(GalleryError):
    """One store was mutated, then a later step failed. Nothing was rolled back."""

    code = "partial_failure"

    def __init__(
        self,
        operation: str,
        completed: list[str],
        failed_step: str,
        cause: Optional[BaseException] = None,
    ):
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} incomplete, step '{failed_step}' failed{detail}")
        self.operation = operation
        self.completed = list(completed)
        self.failed_step = failed_step
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "partial": True,
            "operation": self.operation,
            "completed": self.completed,
            "failed_step": self.failed_step,
        })
        return data
