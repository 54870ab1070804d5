"""Enum definitions for the enrollment service."""

import enum


class MembershipCategory(str, enum.Enum):
    INDIVIDUAL = "I"
    DUAL = "D"
    FAMILY = "F"

    @property
    def label(self) -> str:
        return {"I": "Individual", "D": "Dual", "F": "Family"}[self.value]


class SpecialtyMembership(str, enum.Enum):
    STANDARD = ""
    JUNIOR = "J"
    SENIOR = "S"
    YOUNG_PROFESSIONAL = "Y"


class MemberType(str, enum.Enum):
    ADULT = "adult"
    CHILD = "child"
    YOUTH = "youth"


class MemberRole(str, enum.Enum):
    PRIMARY = "P"
    SECONDARY = "S"
    DEPENDENT = "D"
    GUARDIAN = "G"


class BillableFlag(str, enum.Enum):
    DUES = "D"
    BILLABLE_ADDON = "B"


class AllocationMode(str, enum.Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class WorkflowState(str, enum.Enum):
    ALLOCATING = "allocating"
    FALLBACK_RETURNED = "fallback_returned"
    WRITING_MEMBERSHIP = "writing_membership"
    WRITING_FAMILY = "writing_family"
    WRITING_GUARDIAN = "writing_guardian"
    WRITING_MESSAGE_AND_CONTRACT = "writing_message_and_contract"
    WRITING_RECEIPTS = "writing_receipts"
    MIGRATING_PRODUCTION = "migrating_production"
    ARCHIVING_CONTRACT = "archiving_contract"
    RESPONDING = "responding"
    ABORTED = "aborted"
