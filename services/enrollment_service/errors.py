"""Exceptions raised by the enrollment workflow."""

from typing import Optional

from libs.db.procedures import ProcedureError


class EnrollmentError(Exception):
    """Base class for failures that abort an enrollment."""


class AllocationError(EnrollmentError):
    """No customer code could be obtained by either allocation path."""


class MembershipWriteError(EnrollmentError):
    """A required membership/member write failed."""

    def __init__(self, step: str, cause: Optional[BaseException] = None):
        self.step = step
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Membership write failed at {step}{detail}")


class ResultDecodeError(EnrollmentError):
    """A procedure result row did not carry a required column."""

    def __init__(self, procedure: str, field: str):
        self.procedure = procedure
        self.field = field
        super().__init__(f"{procedure} returned no usable '{field}' value")


class EnrollmentAborted(EnrollmentError):
    """
    The workflow stopped at a fatal step. Rows written by ``completed_steps``
    are left in place for manual reconciliation.
    """

    def __init__(
        self,
        state: str,
        cause: BaseException,
        completed_steps: Optional[list[str]] = None,
        cust_code: Optional[str] = None,
    ):
        self.state = state
        self.cause = cause
        self.completed_steps = list(completed_steps or [])
        self.cust_code = cust_code
        super().__init__(str(cause))


__all__ = [
    "AllocationError",
    "EnrollmentAborted",
    "EnrollmentError",
    "MembershipWriteError",
    "ProcedureError",
    "ResultDecodeError",
]
