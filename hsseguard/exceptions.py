"""
Exception classes for HSSEGuard.

This module defines the exception hierarchy used throughout HSSEGuard.
All custom exceptions inherit from HSSEGuardError to allow for easy
catching of any HSSEGuard-specific exception.
"""

from typing import Any


class HSSEGuardError(Exception):
    """
    Base exception for all HSSEGuard errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


class ConfigurationError(HSSEGuardError):
    """
    Raised when there is an error in HSSEGuard configuration.

    Examples:
        - Missing configuration file
        - Invalid YAML syntax in configuration
        - Configuration value out of allowed range
    """

    pass


class ValidationError(HSSEGuardError):
    """
    Raised when input to an aggregate operation or a rule fails validation.

    Examples:
        - Blank incident title
        - Corrective action without an assignee
        - Escalation rule without actions
    """

    pass


class InvalidTransitionError(HSSEGuardError):
    """
    Raised when a lifecycle transition is not allowed.

    The aggregate is left unchanged when this is raised.

    Examples:
        - Changing the status of a closed incident
        - Starting a corrective action that is already completed
    """

    pass


class PendingActionsError(InvalidTransitionError):
    """
    Raised when an incident is closed while corrective actions are still open.

    Attributes:
        pending_action_ids: IDs of the corrective actions that are not completed.
    """

    def __init__(
        self,
        message: str,
        pending_action_ids: list[str],
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(details or {})
        merged.setdefault("pending_action_ids", list(pending_action_ids))
        super().__init__(message, merged)
        self.pending_action_ids = list(pending_action_ids)


class RuleError(HSSEGuardError):
    """
    Raised when escalation rule files or the rule store cannot be used.

    Examples:
        - Rule file not found
        - Invalid YAML in a rule file
        - Unknown rule id
    """

    pass


class DispatchError(HSSEGuardError):
    """
    Raised by a dispatch gateway when an action could not be performed.

    Dispatch errors are retryable. The engine records every failed attempt
    in the audit trail and never lets one failure stop other actions.
    """

    pass


class DuplicateDispatchError(HSSEGuardError):
    """
    Raised when a dedup key has already been claimed.

    This is internal to the escalation engine; it is caught and turned into
    a skipped outcome, never surfaced to callers.
    """

    pass


class StorageError(HSSEGuardError):
    """
    Raised when there is an error in the storage layer.

    Examples:
        - Database connection failed
        - Query execution error
        - Constraint violation
    """

    pass
