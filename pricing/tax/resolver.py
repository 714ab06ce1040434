"""
Tax jurisdiction resolution with state -> country fallback.

An unmapped jurisdiction is untaxed, and a store fault degrades to the same
zero-rate answer: tax lookup must never block checkout.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from pricing.core.errors import StoreUnavailableError
from pricing.discounts.records import ZERO
from pricing.tax.records import TaxLevel, TaxRate, TaxResult
from pricing.utils.logger import get_logger

logger = get_logger("tax.resolver")

MISSING_LOCATION = "Missing location data"
NO_RATE_FOUND = "No tax rate found for this location"
LOOKUP_FAILED = "Tax rate lookup unavailable"


def _normalize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    return value or None


def untaxed(country: Optional[str] = None, state: Optional[str] = None, message: Optional[str] = None) -> TaxResult:
    return TaxResult(rate=ZERO, level=TaxLevel.NONE, country=country, state=state, message=message)


def result_from_rate(row: TaxRate, level: TaxLevel, state: Optional[str] = None) -> TaxResult:
    return TaxResult(
        rate=row.rate,
        level=level,
        country=row.country_code,
        state=row.state_code if level is TaxLevel.STATE else state,
        state_name=row.state_name if level is TaxLevel.STATE else None,
        tax_type=row.tax_type,
        breakdown=row.breakdown,
    )


class TaxResolver:
    """
    Resolve (country, state) to a tax rate.

    `repository` must provide ``async find(country_code, state_code)`` returning
    a TaxRate or None (state_code None = the country-wide row).
    """

    def __init__(self, repository, timeout_seconds: Optional[float] = None):
        self.repository = repository
        self.timeout_seconds = timeout_seconds

    async def _find(self, country: str, state: Optional[str]) -> Optional[TaxRate]:
        lookup = self.repository.find(country, state)
        if self.timeout_seconds:
            try:
                return await asyncio.wait_for(lookup, timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                raise StoreUnavailableError("tax_rates", "timed out")
        return await lookup

    async def resolve(self, country: Optional[str], state: Optional[str] = None) -> TaxResult:
        country = _normalize(country)
        state = _normalize(state)
        if country is None:
            return untaxed(state=state, message=MISSING_LOCATION)

        try:
            if state is not None:
                # Both rows are independent reads; fetch together, prefer the state row
                state_row, country_row = await asyncio.gather(
                    self._find(country, state),
                    self._find(country, None),
                )
            else:
                state_row, country_row = None, await self._find(country, None)
        except StoreUnavailableError as e:
            logger.error(f"tax lookup failed for {country}/{state}: {e}")
            return untaxed(country, state, LOOKUP_FAILED)

        if state_row is not None:
            logger.debug(f"tax resolved at state level: {country}/{state} rate={state_row.rate}")
            return result_from_rate(state_row, TaxLevel.STATE)
        if country_row is not None:
            logger.debug(f"tax resolved at country level: {country} (state={state}) rate={country_row.rate}")
            return result_from_rate(country_row, TaxLevel.COUNTRY, state=state)

        logger.info(f"no tax rate for {country}/{state}, treating as untaxed")
        return untaxed(country, state, NO_RATE_FOUND)
