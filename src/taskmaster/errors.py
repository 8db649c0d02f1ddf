# src/taskmaster/errors.py

"""
Error taxonomy.

Every failure the user can trigger maps to one of these classes, and each
class has a one-line user-facing message (see friendly_error_message).
"""

from __future__ import annotations


class TaskMasterError(Exception):
    """Base class for all application errors."""


class ConfigError(TaskMasterError):
    """Missing or invalid backend configuration. Fatal at startup."""


class AuthError(TaskMasterError):
    """Sign-in, registration or sign-out failed. The user may retry."""


class StoreError(TaskMasterError):
    """A task store mutation or subscription failed."""


class ValidationError(TaskMasterError):
    """A request was malformed before it reached any backend."""


class PrioritizationError(TaskMasterError):
    """The prioritization call failed (network, timeout, model error)."""


class SchemaViolationError(PrioritizationError):
    """The model output does not match the prioritization response shape."""


def friendly_error_message(err: BaseException) -> str:
    msg = str(err).strip()
    if isinstance(err, ConfigError):
        return f"Configuration error: {msg or 'missing settings'}."
    if isinstance(err, AuthError):
        return f"Authentication failed: {msg or 'please try again'}."
    if isinstance(err, StoreError):
        return f"Task store error: {msg or 'please try again'}. The list may be stale."
    if isinstance(err, ValidationError):
        return f"Invalid request: {msg}"
    if isinstance(err, SchemaViolationError):
        return "AI prioritization returned an unexpected answer. Please try again."
    if isinstance(err, PrioritizationError):
        return f"Failed to get task prioritization: {msg or 'please try again'}."
    return msg or err.__class__.__name__
