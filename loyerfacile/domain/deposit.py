from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from .dates import add_months

# Direct-payment policy: 2 months advance + 2 months guarantee + 1 month agency fee.
ADVANCE_MONTHS = 2
GUARANTEE_MONTHS = 2
AGENCY_MONTHS = 1
DEPOSIT_MONTHS = ADVANCE_MONTHS + GUARANTEE_MONTHS + AGENCY_MONTHS


@dataclass(frozen=True)
class DepositBreakdown:
    monthly_rent: float
    advance: float
    guarantee: float
    agency_fee: float
    total: float


def compute_deposit(monthly_rent: float) -> DepositBreakdown:
    rent = float(monthly_rent or 0.0)
    if rent <= 0:
        raise ValueError("monthly rent must be positive")
    return DepositBreakdown(
        monthly_rent=rent,
        advance=rent * ADVANCE_MONTHS,
        guarantee=rent * GUARANTEE_MONTHS,
        agency_fee=rent * AGENCY_MONTHS,
        total=rent * DEPOSIT_MONTHS,
    )


def first_regular_payment_date(start_date: date, advance_months: int = ADVANCE_MONTHS) -> date:
    return add_months(start_date, int(advance_months))


def is_deposit_payment(payment: Any, lease: Any) -> bool:
    """
    A payment counts as the deposit when its amount equals the lease deposit.

    There is no discriminator column: a rent payment that happens to equal
    caution_montant is indistinguishable from the deposit.
    """
    caution = float(getattr(lease, "caution_montant", 0.0) or 0.0)
    if caution <= 0:
        return False
    return float(getattr(payment, "montant", 0.0) or 0.0) == caution
