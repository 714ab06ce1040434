"""Tests for tax jurisdiction resolution (state -> country -> none)."""

import asyncio
from decimal import Decimal

import httpx

from pricing.core.errors import StoreUnavailableError
from pricing.data.memory import InMemoryTaxRateRepository
from pricing.data.repositories import SupabaseTaxRateRepository
from pricing.tax.records import TaxLevel
from pricing.tax.resolver import LOOKUP_FAILED, MISSING_LOCATION, TaxResolver
from pricing.utils.supabase_client import SupabaseClient

from conftest import TAX_ROWS


def resolve(country, state=None, rows=TAX_ROWS):
    resolver = TaxResolver(InMemoryTaxRateRepository(rows))
    return asyncio.run(resolver.resolve(country, state))


class FailingTaxRepository:
    async def find(self, country_code, state_code):
        raise StoreUnavailableError("tax_rates", "HTTP 500")


class SlowTaxRepository:
    async def find(self, country_code, state_code):
        await asyncio.sleep(5)


class TestResolution:
    def test_state_row(self):
        result = resolve("CA", "QC")
        assert result.level is TaxLevel.STATE
        assert result.rate == Decimal("0.14975")
        assert result.state == "QC"
        assert result.state_name == "Quebec"
        assert result.tax_type == "GST+QST"
        assert result.breakdown.qst == Decimal("0.09975")
        assert result.breakdown.gst == Decimal("0.05")
        assert result.breakdown.hst == Decimal("0")

    def test_falls_back_to_country_row(self):
        result = resolve("CA", "ON")
        assert result.level is TaxLevel.COUNTRY
        assert result.rate == Decimal("0.05")
        assert result.country == "CA"
        assert result.state == "ON"
        assert result.state_name is None

    def test_country_only_request(self):
        result = resolve("CA")
        assert result.level is TaxLevel.COUNTRY
        assert result.rate == Decimal("0.05")

    def test_unmapped_country_is_untaxed(self):
        result = resolve("US")
        assert result.level is TaxLevel.NONE
        assert result.rate == Decimal("0")
        assert result.country == "US"

    def test_input_is_normalized(self):
        result = resolve(" ca ", "qc")
        assert result.level is TaxLevel.STATE
        assert result.country == "CA"

    def test_missing_country(self):
        for country in (None, "", "   "):
            result = resolve(country, "QC")
            assert result.level is TaxLevel.NONE
            assert result.rate == Decimal("0")
            assert result.message == MISSING_LOCATION

    def test_repeated_resolution_is_identical(self):
        assert resolve("CA", "QC") == resolve("CA", "QC")


class TestStoreFaults:
    def test_store_failure_degrades_to_zero(self):
        resolver = TaxResolver(FailingTaxRepository())
        result = asyncio.run(resolver.resolve("CA", "QC"))
        assert result.rate == Decimal("0")
        assert result.level is TaxLevel.NONE
        assert result.message == LOOKUP_FAILED

    def test_timeout_degrades_to_zero(self):
        resolver = TaxResolver(SlowTaxRepository(), timeout_seconds=0.01)
        result = asyncio.run(resolver.resolve("CA"))
        assert result.rate == Decimal("0")
        assert result.level is TaxLevel.NONE

    def test_non_json_store_answer_degrades_to_zero(self):
        client = SupabaseClient(
            "https://example.supabase.co",
            "service-key",
            retry_attempts=1,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")),
        )
        resolver = TaxResolver(SupabaseTaxRateRepository(client))

        async def _go():
            try:
                return await resolver.resolve("CA", "QC")
            finally:
                await client.aclose()

        result = asyncio.run(_go())
        assert result.level is TaxLevel.NONE
        assert result.rate == Decimal("0")
        assert result.message == LOOKUP_FAILED
