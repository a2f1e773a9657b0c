"""
Exceptions raised by the service layer.
Blueprints don't catch these; main.py turns them into JSON error responses.
"""


class ValidationError(ValueError):
    """Caller-supplied data is missing or invalid (HTTP 400)."""


class NotFoundError(LookupError):
    """A referenced record does not exist or is not visible to the caller (HTTP 404)."""


class AccessDenied(Exception):
    """The current user's role does not allow the action (HTTP 403)."""
