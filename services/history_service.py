"""
Reward history service.

Append-only record of finished rounds (round id -> winner, amount) so the
client can render past winners straight from the server.
"""
from typing import List, Dict, Any, Optional

from sqlalchemy.orm import Session

from models import RewardRecord


def record_reward(
    round_id: int,
    winner: str,
    amount: int,
    winner_index: int,
    participant_count: int,
    seed: int,
    distributed_at: int,
    db: Session
) -> RewardRecord:
    """
    Write the record for a finished round.

    The primary key is the round id, so a second write for the same round
    fails at flush time instead of silently overwriting history.
    """
    record = RewardRecord(
        round_id=round_id,
        winner=winner,
        amount=amount,
        winner_index=winner_index,
        participant_count=participant_count,
        seed=str(seed),
        distributed_at=distributed_at,
    )
    db.add(record)
    db.flush()
    return record


def get_reward_record(round_id: int, db: Session) -> Optional[RewardRecord]:
    return db.query(RewardRecord).filter(RewardRecord.round_id == round_id).first()


def get_reward_recipient(round_id: int, db: Session) -> Optional[str]:
    """
    Return the winner of a finished round, or None for the live round and
    for round ids that were never reached.
    """
    record = get_reward_record(round_id, db)
    return record.winner if record else None


def serialize_record(record: RewardRecord) -> Dict[str, Any]:
    return {
        "round_id": record.round_id,
        "winner": record.winner,
        "amount": record.amount,
        "winner_index": record.winner_index,
        "participant_count": record.participant_count,
        "seed": record.seed,
        "distributed_at": record.distributed_at,
    }


def list_rewards(db: Session, limit: int = 20, before_round_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Most recent rewards first.

    before_round_id works as a cursor: pass the smallest round id of the
    previous page to get the next one.
    """
    query = db.query(RewardRecord)
    if before_round_id is not None:
        query = query.filter(RewardRecord.round_id < before_round_id)

    rows = query.order_by(RewardRecord.round_id.desc()).limit(limit).all()
    return [serialize_record(row) for row in rows]
