"""
Generation errors and HTTP exception helpers.

Generation errors are terminal for one form submission. The page controller
catches them and renders their ``message`` into the panel; nothing here is
fatal to the process.

Usage:
    from fanaan.utils.exceptions import MissingCredential, raise_conflict

    raise MissingCredential("groqKey")
    raise_conflict("A generation is already running for this form")
"""

from typing import NoReturn, Optional

from fastapi import HTTPException, status


class GenerationError(Exception):
    """Base class for failures of a single generation request."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingCredential(GenerationError):
    """The user has not configured the key a page needs."""

    def __init__(self, credential_name: str):
        super().__init__(
            f"{credential_name} not found. Please set it in the API Keys page."
        )
        self.credential_name = credential_name


class KeySelectionRequired(GenerationError):
    """A Google page was submitted before a key was selected for the session."""

    def __init__(self, message: str = "No API key selected. Please select a key to continue."):
        super().__init__(message)


class InvalidInput(GenerationError):
    """A required form field is empty or unusable."""


class HttpError(GenerationError):
    """Non-2xx provider response, or a transport failure (status is None)."""

    def __init__(self, status: Optional[int], reason: str = "", body: str = ""):
        if status is None:
            message = f"Network Error: {reason}"
        else:
            message = f"API Error: {status} {reason}".rstrip()
            if body:
                message = f"{message} - {body}"
        super().__init__(message)
        self.status = status
        self.reason = reason
        self.body = body


class StreamError(GenerationError):
    """Reading an in-progress stream failed; partial_text is what arrived."""

    def __init__(self, message: str, partial_text: str = ""):
        super().__init__(f"Stream interrupted: {message}")
        self.partial_text = partial_text


class WebhookError(Exception):
    """Webhook delivery failed. Logged by the notifier, never surfaced."""


def raise_bad_request(detail: str) -> NoReturn:
    """Raise HTTP 400 Bad Request."""
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail,
    )


def raise_not_found(resource: str, id: int | str | None = None) -> NoReturn:
    """Raise HTTP 404 Not Found."""
    if id is not None:
        detail = f"{resource} with id {id} not found"
    else:
        detail = f"{resource} not found"
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=detail,
    )


def raise_conflict(detail: str) -> NoReturn:
    """Raise HTTP 409 Conflict."""
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=detail,
    )
