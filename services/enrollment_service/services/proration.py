"""
Proration and tax arithmetic for new memberships.

Pure functions with no database dependencies for easy testing.
Every figure is rounded half-up to cents as soon as it is produced; later
figures are computed from the rounded values. Stored legacy totals depend on
this, so do not collapse it into a single final rounding.
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.currency import Number, ZERO, round2, to_decimal
from libs.common.datetime_utils import club_today
from services.enrollment_service.models.enums import MembershipCategory
from services.enrollment_service.schemas.enrollment import ServiceAddon
from services.enrollment_service.schemas.results import ProrationResult


def month_position(effective: date) -> tuple[int, int]:
    """Return ``(days_in_month, days_remaining)`` counting ``effective`` itself."""
    days_in_month = calendar.monthrange(effective.year, effective.month)[1]
    return days_in_month, days_in_month - effective.day + 1


def calculate_proration(
    *,
    requested_start_date: Optional[date],
    full_monthly_dues: Number,
    tax_rate: Number,
    initiation_fee: Number,
    service_addons: Iterable[ServiceAddon] = (),
    child_addons: Iterable[ServiceAddon] = (),
    pt_package_price: Number = 0,
    today: Optional[date] = None,
) -> ProrationResult:
    """
    Compute what a new member owes today and every month.

    The enrollment fee is part of the dues tax base, not the add-on tax base.
    Without a start date nothing is prorated. A zero tax rate (non-taxed
    clubs) yields zero tax everywhere.
    """
    dues = round2(full_monthly_dues)
    rate = to_decimal(tax_rate)
    fee = round2(initiation_fee)
    pt_price = round2(pt_package_price)
    addons = list(service_addons) + list(child_addons)

    full_monthly_tax = round2(dues * rate)

    if requested_start_date is None:
        days_in_month = days_remaining = 0
        factor = Decimal("0")
        prorated_dues = ZERO
        prorated_addons_total = ZERO
        prorated_dues_tax = ZERO
        prorated_addons_tax = ZERO
    else:
        effective = max(requested_start_date, today or club_today())
        days_in_month, days_remaining = month_position(effective)
        factor = Decimal(days_remaining) / Decimal(days_in_month)

        prorated_dues = round2(dues * days_remaining / days_in_month)
        prorated_addons_total = round2(
            sum(
                (to_decimal(a.price) * days_remaining / days_in_month for a in addons),
                Decimal("0"),
            )
        )
        prorated_dues_tax = round2((fee + prorated_dues) * rate)
        prorated_addons_tax = round2(prorated_addons_total * rate)

    total_due_now = round2(
        fee
        + prorated_dues
        + prorated_addons_total
        + prorated_dues_tax
        + prorated_addons_tax
        + pt_price
    )

    return ProrationResult(
        prorated_factor=factor,
        days_in_month=days_in_month,
        days_remaining=days_remaining,
        prorated_dues=prorated_dues,
        prorated_dues_tax=prorated_dues_tax,
        prorated_addons_total=prorated_addons_total,
        prorated_addons_tax=prorated_addons_tax,
        full_monthly_dues=dues,
        full_monthly_tax=full_monthly_tax,
        initiation_fee=fee,
        pt_package_price=pt_price,
        total_due_now=total_due_now,
    )


def addon_prorated_share(
    addon_price: Number, prorated_dues: Number, full_net_dues: Number
) -> Decimal:
    """Prorate an add-on by the same fraction the dues were prorated."""
    net = to_decimal(full_net_dues)
    if net == 0:
        return ZERO
    return round2(to_decimal(addon_price) * to_decimal(prorated_dues) / net)


def gross_monthly_dues(full_monthly_dues: Number, addons: Iterable[ServiceAddon]) -> Decimal:
    """Dues plus every add-on's monthly price."""
    return round2(
        to_decimal(full_monthly_dues) + sum((to_decimal(a.price) for a in addons), Decimal("0"))
    )


def resolve_membership_category(
    *, adult_count: int, dependent_count: int, is_new_mexico: bool
) -> MembershipCategory:
    """
    Derive the billing category from who is on the membership.

    ``adult_count`` includes the primary member. New Mexico clubs bill
    dependents as a Family membership; other clubs bill them as child
    add-ons, leaving the category to the adults.
    """
    if is_new_mexico and dependent_count > 0:
        return MembershipCategory.FAMILY
    if adult_count >= 2:
        return MembershipCategory.DUAL
    return MembershipCategory.INDIVIDUAL
