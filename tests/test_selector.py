"""Tests for auto-apply discount selection."""

from datetime import timedelta
from decimal import Decimal

from pricing.discounts.records import DiscountCode, EligibilityContext
from pricing.discounts.selector import rank_candidates, select_best

from conftest import NOW, discount_row


def auto(code, **overrides):
    overrides.setdefault("auto_apply", True)
    return DiscountCode.from_row(discount_row(code, **overrides))


CTX = EligibilityContext(subtotal=Decimal("100"), now=NOW)


def test_highest_eligible_priority_wins():
    candidates = [
        auto("TEN", priority=10),
        auto("TWENTY", priority=20),
        auto("THIRTY", priority=30, minimum_purchase=500),  # ineligible
    ]
    assert select_best(candidates, CTX).code == "TWENTY"


def test_store_order_is_not_trusted():
    # Delivered first by the store, but expired
    expired = auto("STALE", priority=99, valid_until=(NOW - timedelta(days=1)).isoformat())
    assert select_best([expired, auto("OK", priority=1)], CTX).code == "OK"
    assert select_best([expired], CTX) is None


def test_non_auto_apply_records_are_skipped():
    assert select_best([auto("MANUAL", auto_apply=False, priority=50)], CTX) is None


def test_empty_candidates():
    assert select_best([], CTX) is None


def test_equal_priority_breaks_ties_by_code_then_id():
    b = auto("BETA", priority=5)
    a = auto("ALPHA", priority=5)
    assert select_best([b, a], CTX).code == "ALPHA"

    first = auto("SAME", id="id-2", priority=5)
    second = auto("SAME", id="id-1", priority=5)
    assert select_best([first, second], CTX).id == "id-1"


def test_first_purchase_candidate_needs_known_history():
    welcome = auto("WELCOME", priority=50, first_purchase_only=True)
    fallback = auto("FALLBACK", priority=1)
    assert select_best([welcome, fallback], CTX).code == "FALLBACK"

    new_user = EligibilityContext(subtotal=Decimal("100"), now=NOW, user_id="u1", has_completed_order=False)
    assert select_best([welcome, fallback], new_user).code == "WELCOME"


def test_rank_candidates_orders_all_survivors():
    ranked = rank_candidates([auto("A", priority=1), auto("B", priority=3), auto("C", priority=2)], CTX)
    assert [d.code for d in ranked] == ["B", "C", "A"]
