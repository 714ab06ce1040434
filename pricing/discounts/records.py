"""
Discount records and evaluation inputs.

Rows come from the `discount_codes` table (snake_case columns):
  id                 uuid
  code               text   unique, stored uppercase
  discount_type      text   "percentage" | "fixed" ("fixed_amount" in older rows)
  discount_value     numeric
  maximum_discount   numeric  nullable, percentage only
  minimum_purchase   numeric  nullable
  stackable          bool
  auto_apply         bool
  first_purchase_only bool
  priority           int
  valid_from         timestamptz nullable
  valid_until        timestamptz nullable
  is_active          bool
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


ZERO = Decimal("0")


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"

    @classmethod
    def parse(cls, raw: str) -> "DiscountType":
        value = (raw or "").strip().lower()
        if value in ("fixed", "fixed_amount"):
            return cls.FIXED
        if value in ("percentage", "percent"):
            return cls.PERCENTAGE
        raise ValueError(f"Unsupported discount type: {raw!r}")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a JSON number/string to Decimal; None stays None."""
    if value is None or value == "":
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a decimal value: {value!r}")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class DiscountCode:
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    maximum_discount: Optional[Decimal] = None
    minimum_purchase: Optional[Decimal] = None
    stackable: bool = False
    auto_apply: bool = False
    first_purchase_only: bool = False
    priority: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    description: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DiscountCode":
        """Build a record from a store row. Raises ValueError on unusable rows."""
        discount_type = DiscountType.parse(row.get("discount_type"))
        value = to_decimal(row.get("discount_value")) or ZERO
        if value < 0:
            raise ValueError(f"Negative discount_value on {row.get('code')!r}")
        if discount_type is DiscountType.PERCENTAGE and value > 100:
            raise ValueError(f"Percentage above 100 on {row.get('code')!r}")
        maximum = to_decimal(row.get("maximum_discount"))
        # A cap only means something for percentage discounts
        if discount_type is not DiscountType.PERCENTAGE:
            maximum = None
        return cls(
            id=str(row["id"]),
            code=str(row.get("code") or "").strip().upper(),
            discount_type=discount_type,
            discount_value=value,
            maximum_discount=maximum,
            minimum_purchase=to_decimal(row.get("minimum_purchase")),
            stackable=bool(row.get("stackable") or False),
            auto_apply=bool(row.get("auto_apply") or False),
            first_purchase_only=bool(row.get("first_purchase_only") or False),
            priority=int(row.get("priority") or 0),
            valid_from=parse_timestamp(row.get("valid_from")),
            valid_until=parse_timestamp(row.get("valid_until")),
            is_active=bool(row.get("is_active", True)),
            description=row.get("description"),
        )


@dataclass(frozen=True)
class CartItem:
    product_id: str
    quantity: int
    unit_price: Decimal
    variant_id: Optional[str] = None
    category_id: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def cart_subtotal(items: Sequence[CartItem]) -> Decimal:
    return sum((item.line_total for item in items), ZERO)


class FailureKind(str, Enum):
    CODE_NOT_FOUND = "CodeNotFound"
    INACTIVE = "Inactive"
    EXPIRED = "Expired"
    NOT_YET_VALID = "NotYetValid"
    BELOW_MINIMUM_PURCHASE = "BelowMinimumPurchase"
    NOT_FIRST_PURCHASE = "NotFirstPurchase"


_FAILURE_MESSAGES = {
    FailureKind.CODE_NOT_FOUND: "Invalid discount code",
    FailureKind.INACTIVE: "Discount code is not active",
    FailureKind.EXPIRED: "Discount code has expired",
    FailureKind.NOT_YET_VALID: "Discount code is not yet valid",
    FailureKind.NOT_FIRST_PURCHASE: "This discount is only for first-time customers",
}


def failure_message(kind: FailureKind, discount: Optional[DiscountCode] = None) -> str:
    """User-presentable text for a failure kind."""
    if kind is FailureKind.BELOW_MINIMUM_PURCHASE:
        if discount is not None and discount.minimum_purchase is not None:
            return f"Minimum purchase of ${discount.minimum_purchase:.2f} required"
        return "Minimum purchase required"
    return _FAILURE_MESSAGES[kind]


@dataclass(frozen=True)
class EligibilityContext:
    """Everything eligibility depends on, with `now` fixed for the whole call."""
    subtotal: Decimal
    now: datetime
    cart_items: List[CartItem] = field(default_factory=list)
    user_id: Optional[str] = None
    has_completed_order: Optional[bool] = None   # None = unknown (guest)
