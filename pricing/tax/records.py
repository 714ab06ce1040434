"""
Tax rate rows and resolution results.

`tax_rates` table:
  country_code  text   ISO-3166 alpha-2, uppercase
  state_code    text   nullable; null row = country-wide rate
  state_name    text   nullable, display only
  rate          numeric  fraction of subtotal (0.13 = 13%)
  tax_type      text   label, e.g. "HST", "GST+QST"
  gst/pst/qst/hst numeric  informational breakdown, need not sum to rate
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pricing.discounts.records import ZERO, to_decimal


class TaxLevel(str, Enum):
    STATE = "state"
    COUNTRY = "country"
    NONE = "none"


@dataclass(frozen=True)
class TaxBreakdown:
    gst: Decimal = ZERO
    pst: Decimal = ZERO
    qst: Decimal = ZERO
    hst: Decimal = ZERO


@dataclass(frozen=True)
class TaxRate:
    country_code: str
    rate: Decimal
    state_code: Optional[str] = None
    state_name: Optional[str] = None
    tax_type: Optional[str] = None
    breakdown: TaxBreakdown = field(default_factory=TaxBreakdown)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TaxRate":
        state = row.get("state_code")
        return cls(
            country_code=str(row["country_code"]).upper(),
            state_code=str(state).upper() if state else None,
            state_name=row.get("state_name"),
            rate=to_decimal(row.get("rate")) or ZERO,
            tax_type=row.get("tax_type"),
            breakdown=TaxBreakdown(
                gst=to_decimal(row.get("gst")) or ZERO,
                pst=to_decimal(row.get("pst")) or ZERO,
                qst=to_decimal(row.get("qst")) or ZERO,
                hst=to_decimal(row.get("hst")) or ZERO,
            ),
        )


@dataclass(frozen=True)
class TaxResult:
    rate: Decimal
    level: TaxLevel
    country: Optional[str] = None
    state: Optional[str] = None
    state_name: Optional[str] = None
    tax_type: Optional[str] = None
    breakdown: TaxBreakdown = field(default_factory=TaxBreakdown)
    message: Optional[str] = None
