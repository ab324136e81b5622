"""Tests for the in-memory ledger."""
import asyncio
from decimal import Decimal

import pytest

from butler_ledger.exceptions import (
    ButlerValidationError,
    InsufficientFundsError,
    InvalidAmountError,
)
from butler_ledger.ledger import InMemoryLedger, normalize_account_id


@pytest.fixture
def ledger():
    """Create a fresh ledger for each test."""
    return InMemoryLedger()


class TestBalances:
    async def test_unseen_account_has_starting_balance(self, ledger):
        assert await ledger.get_balance("nobody") == Decimal("0.00")

        seeded = InMemoryLedger(starting_balance="10.00")
        assert await seeded.get_balance("new-user") == Decimal("10.00")

    def test_negative_starting_balance_rejected(self):
        with pytest.raises(InvalidAmountError):
            InMemoryLedger(starting_balance="-1")

    async def test_account_ids_are_normalized(self, ledger):
        await ledger.credit("  0xAbC  ", 5)
        assert await ledger.get_balance("0xabc") == Decimal("5.00")

        await ledger.credit(None, 2)
        await ledger.credit("   ", 1)
        assert await ledger.get_balance("agent") == Decimal("3.00")

    def test_normalize_account_id(self):
        assert normalize_account_id(" Wallet ", "agent") == "wallet"
        assert normalize_account_id("", "agent") == "agent"
        assert normalize_account_id(None, "agent") == "agent"


class TestCredit:
    async def test_credit_returns_new_balance(self, ledger):
        assert await ledger.credit("acct", 10) == Decimal("10.00")
        assert await ledger.credit("acct", "2.50") == Decimal("12.50")

    @pytest.mark.parametrize("amount", [0, -5, "0", None, "ten"])
    async def test_invalid_credit_leaves_balance(self, ledger, amount):
        await ledger.credit("acct", 3)
        with pytest.raises(InvalidAmountError):
            await ledger.credit("acct", amount)
        assert await ledger.get_balance("acct") == Decimal("3.00")


class TestDebit:
    async def test_debit_returns_new_balance(self, ledger):
        await ledger.credit("acct", 10)
        assert await ledger.debit("acct", 4) == Decimal("6.00")

    async def test_insufficient_funds_leaves_balance(self, ledger):
        await ledger.credit("acct", "5.00")

        with pytest.raises(InsufficientFundsError) as exc_info:
            await ledger.debit("acct", "8.00")

        error = exc_info.value
        assert error.available == Decimal("5.00")
        assert error.required == Decimal("8.00")
        assert error.http_status == 402
        assert await ledger.get_balance("acct") == Decimal("5.00")

    async def test_debit_rejects_non_positive(self, ledger):
        await ledger.credit("acct", 1)
        with pytest.raises(InvalidAmountError):
            await ledger.debit("acct", 0)
        with pytest.raises(InvalidAmountError):
            await ledger.debit("acct", -1)
        assert await ledger.get_balance("acct") == Decimal("1.00")

    async def test_debit_undoes_credit(self, ledger):
        await ledger.credit("acct", "7.25")
        before = await ledger.get_balance("acct")
        await ledger.credit("acct", "3.10")
        assert await ledger.debit("acct", "3.10") == before

    async def test_repeated_small_debits_do_not_drift(self, ledger):
        await ledger.credit("acct", "1.00")
        for _ in range(10):
            await ledger.debit("acct", 0.1)
        assert await ledger.get_balance("acct") == Decimal("0.00")

    async def test_balance_never_negative(self, ledger):
        operations = [("credit", 3), ("debit", 2), ("debit", 2), ("credit", "0.5"), ("debit", "1.5")]
        for kind, amount in operations:
            try:
                await getattr(ledger, kind)("acct", amount)
            except InsufficientFundsError:
                pass
            assert await ledger.get_balance("acct") >= 0
        assert await ledger.get_balance("acct") == Decimal("0.00")


class TestConcurrency:
    async def test_concurrent_debits_exhaust_exactly(self, ledger):
        await ledger.credit("acct", "1.00")

        results = await asyncio.gather(
            *(ledger.debit("acct", "0.10") for _ in range(15)),
            return_exceptions=True,
        )

        succeeded = [r for r in results if isinstance(r, Decimal)]
        rejected = [r for r in results if isinstance(r, InsufficientFundsError)]
        assert len(succeeded) == 10
        assert len(rejected) == 5
        assert await ledger.get_balance("acct") == Decimal("0.00")

    async def test_concurrent_reservations_cannot_share_funds(self, ledger):
        await ledger.credit("acct", "1.00")

        results = await asyncio.gather(
            ledger.reserve("acct", "0.60"),
            ledger.reserve("acct", "0.60"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, InsufficientFundsError) for r in results) == 1
        assert await ledger.get_available("acct") == Decimal("0.40")


class TestReservations:
    async def test_reserve_holds_available_not_balance(self, ledger):
        await ledger.credit("acct", 5)
        reservation = await ledger.reserve("acct", 3, purpose="webSearch")

        assert reservation.is_active
        assert reservation.purpose == "webSearch"
        assert await ledger.get_balance("acct") == Decimal("5.00")
        assert await ledger.get_available("acct") == Decimal("2.00")

        with pytest.raises(InsufficientFundsError) as exc_info:
            await ledger.debit("acct", 3)
        assert exc_info.value.available == Decimal("2.00")

    async def test_capture_debits(self, ledger):
        await ledger.credit("acct", 5)
        reservation = await ledger.reserve("acct", 3)

        assert await ledger.capture(reservation.reservation_id) == Decimal("2.00")
        assert reservation.status == "captured"
        assert await ledger.get_available("acct") == Decimal("2.00")

    async def test_release_returns_funds(self, ledger):
        await ledger.credit("acct", 5)
        reservation = await ledger.reserve("acct", 3)

        await ledger.release(reservation.reservation_id)

        assert reservation.status == "released"
        assert await ledger.get_balance("acct") == Decimal("5.00")
        assert await ledger.get_available("acct") == Decimal("5.00")

    async def test_reservation_settles_once(self, ledger):
        await ledger.credit("acct", 5)
        reservation = await ledger.reserve("acct", 1)
        await ledger.capture(reservation.reservation_id)

        with pytest.raises(ButlerValidationError):
            await ledger.capture(reservation.reservation_id)
        with pytest.raises(ButlerValidationError):
            await ledger.release(reservation.reservation_id)
        assert await ledger.get_balance("acct") == Decimal("4.00")

    async def test_reserve_without_funds(self, ledger):
        with pytest.raises(InsufficientFundsError):
            await ledger.reserve("acct", "0.50")


class TestSetBalance:
    async def test_overwrites(self, ledger):
        await ledger.credit("acct", 5)
        assert await ledger.set_balance("acct", "42.00") == Decimal("42.00")
        assert await ledger.get_balance("acct") == Decimal("42.00")

    async def test_rejects_negative(self, ledger):
        with pytest.raises(InvalidAmountError):
            await ledger.set_balance("acct", -1)

    async def test_cannot_drop_below_reservations(self, ledger):
        await ledger.credit("acct", 5)
        await ledger.reserve("acct", 3)
        with pytest.raises(InvalidAmountError):
            await ledger.set_balance("acct", 2)
        assert await ledger.get_balance("acct") == Decimal("5.00")


class TestJournal:
    async def test_entries_newest_first(self, ledger):
        await ledger.credit("a", 5, memo="deposit")
        await ledger.debit("a", 2, memo="lunch")
        await ledger.credit("b", 1)

        entries = await ledger.list_entries("a")
        assert [e.kind for e in entries] == ["debit", "credit"]
        assert entries[0].memo == "lunch"
        assert entries[0].balance_after == Decimal("3.00")

        everything = await ledger.list_entries()
        assert len(everything) == 3
        assert everything[0].account_id == "b"

    async def test_journal_is_bounded(self):
        ledger = InMemoryLedger(max_entries=3)
        for _ in range(5):
            await ledger.credit("a", 1)
        assert len(await ledger.list_entries("a")) == 3
        assert await ledger.get_balance("a") == Decimal("5.00")

    async def test_entry_serialization(self, ledger):
        await ledger.credit("a", "2.5", memo="top-up")
        data = (await ledger.list_entries("a"))[0].to_dict()
        assert data["accountId"] == "a"
        assert data["amount"] == "2.50"
        assert data["balanceAfter"] == "2.50"
        assert data["entryId"].startswith("ent_")
