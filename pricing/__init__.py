"""
Storefront pricing resolution.

Discount eligibility, auto-apply selection, discount amounts and tax
jurisdiction resolution for checkout.
"""

from pricing.discounts.calculator import amount_off, format_display
from pricing.discounts.eligibility import is_eligible
from pricing.discounts.selector import select_best

__all__ = [
    'amount_off',
    'format_display',
    'is_eligible',
    'select_best',
]

__version__ = '0.1.0'
