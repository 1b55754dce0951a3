"""Typed outcomes of access operations.

Every error carries a stable ``code``; the HTTP layer maps codes to status
codes and the admin client maps them back to these classes.
"""

from uuid import UUID

from fastapi import status


class AccessError(Exception):
    """Base access error."""

    def __init__(self, message: str, code: str = "access_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(AccessError):
    """Malformed input."""

    def __init__(self, message: str = "Invalid access request"):
        super().__init__(message, "validation_error")


class NotRequestableError(AccessError):
    """Content does not accept access requests."""

    def __init__(self, message: str = "This content isn't open for requests"):
        super().__init__(message, "not_requestable")


class NotSelfEnrollableError(NotRequestableError):
    """Content cannot be joined without review."""

    def __init__(self, message: str = "This content requires an approved request"):
        AccessError.__init__(self, message, "not_self_enrollable")


class AlreadyEnrolledError(AccessError):
    """Learner already has access."""

    def __init__(self, message: str = "You already have access"):
        super().__init__(message, "already_enrolled")


class DuplicateRequestError(AccessError):
    """A pending request already exists for the pair."""

    def __init__(
        self, message: str = "You already have a pending request for this content"
    ):
        super().__init__(message, "duplicate_request")


class NotFoundError(AccessError):
    """Request, content unit or enrollment is gone (or never existed)."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "not_found")


class NotOrphanedError(AccessError):
    """Cleanup attempted on a request whose references still resolve."""

    def __init__(
        self,
        message: str = "Request still references a live learner and content unit",
    ):
        super().__init__(message, "not_orphaned")


class OrphanedReferenceError(AccessError):
    """Approval attempted on a request whose learner or content is gone."""

    def __init__(
        self,
        message: str = "Request references a deleted learner or content unit",
    ):
        super().__init__(message, "orphaned_reference")


class IntegrityFault(AccessError):
    """A pair holds both a pending request and an enrollment."""

    def __init__(
        self,
        learner_id: UUID | None = None,
        content_unit_id: UUID | None = None,
        message: str = "Request and enrollment coexist for the same learner and content",
    ):
        self.learner_id = learner_id
        self.content_unit_id = content_unit_id
        super().__init__(message, "integrity_fault")


# ==============================================================================
# Code Mapping
# ==============================================================================

ERROR_STATUS_MAP: dict[str, int] = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "not_requestable": status.HTTP_400_BAD_REQUEST,
    "not_self_enrollable": status.HTTP_400_BAD_REQUEST,
    "already_enrolled": status.HTTP_409_CONFLICT,
    "duplicate_request": status.HTTP_409_CONFLICT,
    "not_found": status.HTTP_404_NOT_FOUND,
    "not_orphaned": status.HTTP_409_CONFLICT,
    "orphaned_reference": status.HTTP_409_CONFLICT,
    "integrity_fault": status.HTTP_409_CONFLICT,
}

ERROR_CLASSES: dict[str, type[AccessError]] = {
    "validation_error": ValidationError,
    "not_requestable": NotRequestableError,
    "not_self_enrollable": NotSelfEnrollableError,
    "already_enrolled": AlreadyEnrolledError,
    "duplicate_request": DuplicateRequestError,
    "not_found": NotFoundError,
    "not_orphaned": NotOrphanedError,
    "orphaned_reference": OrphanedReferenceError,
    "integrity_fault": IntegrityFault,
}


def status_for(error: AccessError) -> int:
    """HTTP status for an access error."""
    return ERROR_STATUS_MAP.get(error.code, status.HTTP_400_BAD_REQUEST)


def error_from_code(code: str, message: str | None = None) -> AccessError:
    """Rebuild a typed error from an API error envelope."""
    error_class = ERROR_CLASSES.get(code)
    if error_class is None:
        return AccessError(message or code, code)
    if error_class is IntegrityFault:
        return IntegrityFault(message=message) if message else IntegrityFault()
    return error_class(message) if message else error_class()
