"""
Error taxonomy for the intake meeting engine.

Every service raises one of these types; the API layer maps them to HTTP
responses in one place (see `api/main.py`). Each error carries a stable
`kind`, a human-readable message and optional structured `details`, so a
client can render the failure inline next to the offending field or action.

Usage:
    from utils.exceptions import ValidationError, PreconditionError

    raise ValidationError("Template name is required", details={"name": "required"})
    raise PreconditionError("Cannot invite to an unscheduled meeting")
"""

from typing import Any, Dict, List, Optional


class IntakeError(Exception):
    """Base class for all engine errors."""

    kind: str = "intake_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the structured error body returned by the API."""
        return {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(IntakeError):
    """
    Malformed input: question definitions, response values, email addresses.

    `details` maps the offending field (e.g. `questions[2].options` or a
    question id) to a message.
    """

    kind = "validation_error"


class NotFoundError(IntakeError):
    """A template, question or session does not exist."""

    kind = "not_found"

    def __init__(self, resource: str, resource_id: Any = None):
        self.resource = resource
        self.resource_id = resource_id
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} {resource_id} not found"
        super().__init__(message, details={"resource": resource, "id": str(resource_id) if resource_id is not None else None})


class PreconditionError(IntakeError):
    """Operation attempted from the wrong session state."""

    kind = "precondition_failed"


class ConflictError(IntakeError):
    """Uniqueness or concurrency invariant would be violated."""

    kind = "conflict"


class IncompleteSessionError(IntakeError):
    """Completion attempted while required questions are unanswered."""

    kind = "incomplete_session"

    def __init__(self, missing_question_ids: List[str]):
        self.missing_question_ids = list(missing_question_ids)
        super().__init__(
            f"{len(self.missing_question_ids)} required question(s) have no answer",
            details={"missing_question_ids": self.missing_question_ids},
        )


class GenerationBackendError(IntakeError):
    """A single structured-generation call failed (empty, non-JSON or provider error)."""

    kind = "generation_backend_error"


class GenerationFailedError(IntakeError):
    """All generation attempts for one request were used up."""

    kind = "generation_failed"

    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        self.attempts = attempts
        self.last_error = last_error
        cause = f"{type(last_error).__name__}: {last_error}" if last_error else "unknown error"
        super().__init__(
            f"Generation failed after {attempts} attempt(s): {cause}",
            details={"attempts": attempts, "last_error": cause},
        )


class InvitationError(IntakeError):
    """Base for invitation dispatch failures."""

    kind = "invitation_error"

    def __init__(self, message: str, email: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.email = email
        merged = dict(details or {})
        if email:
            merged.setdefault("email", email)
        super().__init__(message, details=merged)


class AuthScopeError(InvitationError):
    """The mail provider rejected our credentials or their permission scope; reauthorize."""

    kind = "auth_scope_error"


class DeliveryError(InvitationError):
    """The mail provider could not deliver the invitation."""

    kind = "delivery_error"
