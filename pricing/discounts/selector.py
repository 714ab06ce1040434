"""
Auto-apply discount selection.

The store already narrows and orders candidates, but every record is
re-validated here; a row the store returned first is never trusted blindly.

Ordering: priority descending, then code ascending, then id ascending. The
secondary keys only make equal-priority ties deterministic; they are a policy
placeholder, not a business rule.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from pricing.discounts.eligibility import is_eligible
from pricing.discounts.records import DiscountCode, EligibilityContext
from pricing.utils.logger import get_logger

logger = get_logger("discounts.selector")


def selection_key(discount: DiscountCode):
    return (-discount.priority, discount.code, discount.id)


def rank_candidates(candidates: Iterable[DiscountCode], context: EligibilityContext) -> List[DiscountCode]:
    """All eligible auto-apply candidates, best first."""
    survivors = []
    for discount in candidates:
        if not discount.auto_apply:
            continue
        result = is_eligible(discount, context)
        if not result.ok:
            logger.debug(f"auto-apply candidate {discount.code} rejected: {result.reason.value}")
            continue
        survivors.append(discount)
    return sorted(survivors, key=selection_key)


def select_best(candidates: Iterable[DiscountCode], context: EligibilityContext) -> Optional[DiscountCode]:
    """Return the single best eligible auto-apply discount, or None."""
    ranked = rank_candidates(candidates, context)
    return ranked[0] if ranked else None
