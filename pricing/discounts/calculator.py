"""
Discount amount and display computation.

  percentage  amount = subtotal * value / 100, then capped by maximum_discount
  fixed       amount = value
  both        clamped to [0, subtotal] so a discount never makes a total negative

Amounts are exact Decimals; rounding to the currency's minor unit is left to
whoever charges the card.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from pricing.discounts.records import ZERO, DiscountCode, DiscountType

WELCOME_LABEL = "Welcome discount!"
SUCCESS_MESSAGE = "Discount applied successfully"


def format_number(value: Decimal) -> str:
    """30.00 -> '30', 12.50 -> '12.5' (no exponent notation)."""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


def _uncapped_amount(discount: DiscountCode, subtotal: Decimal) -> Decimal:
    if discount.discount_type is DiscountType.PERCENTAGE:
        return subtotal * discount.discount_value / 100
    return discount.discount_value


def _percentage_cap_hit(discount: DiscountCode, subtotal: Decimal) -> bool:
    return (
        discount.discount_type is DiscountType.PERCENTAGE
        and discount.maximum_discount is not None
        and _uncapped_amount(discount, subtotal) > discount.maximum_discount
    )


def amount_off(discount: DiscountCode, subtotal: Decimal) -> Decimal:
    """Money taken off `subtotal` by `discount`; never negative, never above subtotal."""
    if subtotal <= 0:
        return ZERO
    amount = _uncapped_amount(discount, subtotal)
    if _percentage_cap_hit(discount, subtotal):
        amount = discount.maximum_discount
    return max(ZERO, min(amount, subtotal))


def format_display(discount: DiscountCode) -> str:
    if discount.discount_type is DiscountType.PERCENTAGE:
        display = f"{format_number(discount.discount_value)}% off"
    else:
        display = f"${format_number(discount.discount_value)} off"
    if discount.first_purchase_only:
        display = f"{display} - {WELCOME_LABEL}"
    return display


def success_message(discount: DiscountCode, subtotal: Decimal) -> str:
    if _percentage_cap_hit(discount, subtotal):
        return (
            f"{SUCCESS_MESSAGE} ({format_number(discount.discount_value)}% off, "
            f"capped at ${format_number(discount.maximum_discount)})"
        )
    return SUCCESS_MESSAGE


@dataclass(frozen=True)
class DiscountSummary:
    """A discount as presented to the checkout page."""
    discount_id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    amount_off: Decimal
    display: str
    stackable: bool
    maximum_discount: Optional[Decimal] = None
    is_auto_apply: bool = False
    is_first_order: bool = False


def summarize(
    discount: DiscountCode,
    subtotal: Decimal,
    is_auto_apply: bool = False,
    is_first_order: bool = False,
) -> DiscountSummary:
    return DiscountSummary(
        discount_id=discount.id,
        code=discount.code,
        discount_type=discount.discount_type,
        discount_value=discount.discount_value,
        amount_off=amount_off(discount, subtotal),
        display=format_display(discount),
        stackable=discount.stackable,
        maximum_discount=discount.maximum_discount,
        is_auto_apply=is_auto_apply,
        is_first_order=is_first_order,
    )
