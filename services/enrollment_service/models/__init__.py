"""Enrollment Service models package."""

from services.enrollment_service.models.enums import (
    AllocationMode,
    BillableFlag,
    MemberRole,
    MembershipCategory,
    MemberType,
    SpecialtyMembership,
    WorkflowState,
)

__all__ = [
    "AllocationMode",
    "BillableFlag",
    "MemberRole",
    "MembershipCategory",
    "MemberType",
    "SpecialtyMembership",
    "WorkflowState",
]
