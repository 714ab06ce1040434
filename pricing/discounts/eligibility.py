"""
Discount eligibility.

Checks run in a fixed order and stop at the first failure, so the caller
always gets the most fundamental reason:
  1. active flag
  2. validity window (both bounds inclusive, missing bound = open)
  3. minimum purchase
  4. first-purchase restriction

Cart items are part of the context but do not restrict eligibility yet:
product/category targeting is not evaluated at this layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pricing.discounts.records import DiscountCode, EligibilityContext, FailureKind


@dataclass(frozen=True)
class EligibilityResult:
    ok: bool
    reason: Optional[FailureKind] = None


ELIGIBLE = EligibilityResult(ok=True)


def _fail(kind: FailureKind) -> EligibilityResult:
    return EligibilityResult(ok=False, reason=kind)


def is_eligible(discount: DiscountCode, context: EligibilityContext) -> EligibilityResult:
    """Evaluate one discount record against a cart/user context."""
    if not discount.is_active:
        return _fail(FailureKind.INACTIVE)

    if discount.valid_from is not None and context.now < discount.valid_from:
        return _fail(FailureKind.NOT_YET_VALID)
    if discount.valid_until is not None and context.now > discount.valid_until:
        return _fail(FailureKind.EXPIRED)

    if discount.minimum_purchase is not None and context.subtotal < discount.minimum_purchase:
        return _fail(FailureKind.BELOW_MINIMUM_PURCHASE)

    # Guests (unknown order history) never qualify
    if discount.first_purchase_only and context.has_completed_order is not False:
        return _fail(FailureKind.NOT_FIRST_PURCHASE)

    return ELIGIBLE
