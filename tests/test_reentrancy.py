"""
Tests for a malicious recipient re-entering the pool during payout

The winner's hook runs inside the transfer, after the round has been reset.
It must only ever observe the new round, and the pool must pay out once.
"""
import pytest

from core.exceptions import NoParticipants, RoundNotFinished
from models import RewardRecord
from services.payout_service import get_wallet_balance

from tests.conftest import CENT, DURATION, FixedEntropy

ATTACKER = "0xattacker"


@pytest.fixture
def rigged_pool(make_pool, db, clock):
    """Pool where the attacker always wins round 1"""
    pool = make_pool(entropy=FixedEntropy(0))
    pool.join(db, ATTACKER, CENT)
    pool.join(db, "0xbbb", CENT)
    clock.advance(DURATION)
    return pool


class TestReentrancy:
    """Tests for effects-before-interaction ordering"""

    def test_hook_observes_post_reset_state(self, db, rigged_pool, gateway):
        observed = {}

        def hook(session, address, amount):
            observed["round_id"] = rigged_pool.get_round_id(session)
            observed["participants"] = rigged_pool.get_participants(session)
            observed["pool_balance"] = rigged_pool.get_pool_balance(session)
            observed["recipient"] = rigged_pool.get_reward_recipient(session, 1)
            observed["eligible"] = rigged_pool.is_eligible_for_distribution(session)

        gateway.register_hook(ATTACKER, hook)
        rigged_pool.distribute(db)

        assert observed == {
            "round_id": 2,
            "participants": [],
            "pool_balance": 0,
            "recipient": ATTACKER,
            "eligible": False,
        }

    def test_reentrant_join_lands_in_next_round(self, db, rigged_pool, gateway):
        def hook(session, address, amount):
            rigged_pool.join(session, ATTACKER, 5)

        gateway.register_hook(ATTACKER, hook)
        result = rigged_pool.distribute(db)

        assert result.round_id == 1
        assert result.amount == 2 * CENT
        assert get_wallet_balance(ATTACKER, db) == 2 * CENT
        assert rigged_pool.get_round_id(db) == 2
        assert rigged_pool.get_participants(db) == [ATTACKER]
        assert rigged_pool.get_pool_balance(db) == 5

    def test_reentrant_distribute_is_rejected(self, db, rigged_pool, gateway):
        errors = []

        def hook(session, address, amount):
            try:
                rigged_pool.distribute(session, address)
            except (RoundNotFinished, NoParticipants) as e:
                errors.append(e)

        gateway.register_hook(ATTACKER, hook)
        rigged_pool.distribute(db)

        assert len(errors) == 1
        assert isinstance(errors[0], RoundNotFinished)
        assert get_wallet_balance(ATTACKER, db) == 2 * CENT
        assert db.query(RewardRecord).count() == 1

    def test_reverting_recipient_rolls_back_everything(self, db, rigged_pool, gateway):
        def hook(session, address, amount):
            rigged_pool.join(session, ATTACKER, 5)
            raise RuntimeError("recipient reverted")

        gateway.register_hook(ATTACKER, hook)

        with pytest.raises(RuntimeError):
            rigged_pool.distribute(db)

        assert rigged_pool.get_round_id(db) == 1
        assert rigged_pool.get_participants(db) == [ATTACKER, "0xbbb"]
        assert rigged_pool.get_pool_balance(db) == 2 * CENT
        assert get_wallet_balance(ATTACKER, db) == 0
        assert rigged_pool.get_reward_recipient(db, 1) is None

        gateway.unregister_hook(ATTACKER)
        assert rigged_pool.distribute(db).winner == ATTACKER
