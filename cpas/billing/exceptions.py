"""
Exceptions raised by the billing engine.

Domain problems (overbilling, SOV drift, negative inputs) are never raised;
they are reported through ValidationResult. The exceptions here cover misuse
of the pay application lifecycle and other hard failures.
"""

from typing import Optional


class BillingError(Exception):
    """Base class for billing engine errors."""
    pass


class InvalidTransitionError(BillingError):
    """Raised when a status transition is not allowed."""

    def __init__(self, record: str, current: str, target: str):
        self.record = record
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {record} from '{current}' to '{target}'")


class ImmutableApplicationError(BillingError):
    """Raised when a submitted or paid pay application would be modified."""

    def __init__(self, application_number: int, status: str):
        self.application_number = application_number
        self.status = status
        super().__init__(
            f"Pay application #{application_number} is {status} and can no longer be changed. "
            f"Create a new application to correct it."
        )


class FinalizationBlockedError(BillingError):
    """Raised when a draft cannot be finalized because validation failed.

    The full ValidationResult is available on the ``validation`` attribute so
    callers can show every error and warning to the user.
    """

    def __init__(self, validation, message: Optional[str] = None):
        self.validation = validation
        if message is None:
            if validation.errors:
                message = f"Pay application has {len(validation.errors)} validation error(s)"
            else:
                message = (
                    f"Pay application has {len(validation.warnings)} warning(s) "
                    f"that must be accepted before submission"
                )
        super().__init__(message)


class OutOfSequenceError(BillingError):
    """Raised when submitting a pay application would break the billing chain.

    Applications are submitted in number order: every lower-numbered draft must
    be submitted first, and nothing may be submitted below an application that
    has already gone out.
    """

    def __init__(self, application_number: int, blocking_number: int, blocking_status: str):
        self.application_number = application_number
        self.blocking_number = blocking_number
        self.blocking_status = blocking_status
        if blocking_number < application_number:
            detail = f"draft #{blocking_number} must be submitted first"
        else:
            detail = f"#{blocking_number} is already {blocking_status}"
        super().__init__(f"Pay application #{application_number} cannot be submitted: {detail}")
