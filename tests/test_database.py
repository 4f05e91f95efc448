"""
Tests for the @transactional decorator
"""
import pytest

from database import transactional
from models import Wallet
from services.payout_service import get_wallet_balance


@transactional
def credit(db, address, amount):
    wallet = db.query(Wallet).filter(Wallet.address == address).first()
    if not wallet:
        wallet = Wallet(address=address, balance=0, accepts_payments=True)
        db.add(wallet)
    wallet.balance = wallet.balance + amount
    db.flush()
    return wallet.balance


@transactional
def credit_then_fail(db, address, amount):
    credit(db, address, amount)
    raise RuntimeError("boom")


@transactional
def credit_twice_swallowing_inner_failure(db, address, amount):
    credit(db, address, amount)
    try:
        credit_then_fail(db, address, amount)
    except RuntimeError:
        pass
    return get_wallet_balance(address, db)


class TestTransactional:
    def test_commits_outermost_call(self, db, session_factory):
        assert credit(db, "0xaaa", 5) == 5

        other = session_factory()
        try:
            assert get_wallet_balance("0xaaa", other) == 5
        finally:
            other.close()

    def test_rolls_back_on_error(self, db):
        with pytest.raises(RuntimeError):
            credit_then_fail(db, "0xaaa", 5)

        assert get_wallet_balance("0xaaa", db) == 0

    def test_inner_calls_share_outer_transaction(self, db):
        # the inner failure does not roll back on its own; the outer call decides
        assert credit_twice_swallowing_inner_failure(db, "0xaaa", 5) == 10
        assert get_wallet_balance("0xaaa", db) == 10

    def test_depth_is_reset_after_failure(self, db):
        with pytest.raises(RuntimeError):
            credit_then_fail(db, "0xaaa", 5)

        credit(db, "0xaaa", 1)
        db.rollback()
        assert get_wallet_balance("0xaaa", db) == 1

    def test_keyword_session(self, db):
        assert credit(db=db, address="0xaaa", amount=3) == 3

    def test_requires_session(self):
        with pytest.raises(ValueError):
            credit("not a session", "0xaaa", 1)
