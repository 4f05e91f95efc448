"""
執行環境（Substrate）提供的兩個唯讀能力：

- Clock：目前時間（unix 秒）
- EntropySource：選出得獎者用的 seed

這兩者都由外部注入 RewardPool；commit-reveal 的 commitment 另外存在資料庫。
"""
import hashlib
import time
from typing import Optional, Protocol, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import CommitmentRejected, EntropyUnavailable, InvalidReveal
from models import EntropyCommitment, EventLog, PoolState, RewardRecord


def sha256_int(payload: str) -> int:
    return int(hashlib.sha256(payload.encode("utf-8")).hexdigest(), 16)


# ============ Clock ============

class Clock(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """牆上時鐘"""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    手動時鐘（測試與模擬用）

    範例：
        clock = ManualClock(1_700_000_000)
        clock.advance(11 * 60)
    """

    def __init__(self, start: Optional[int] = None):
        self._now = int(time.time()) if start is None else int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> None:
        self._now = int(timestamp)


# ============ Entropy ============

class EntropySource(Protocol):
    def seed(self, db: Session, state: PoolState, participants: Sequence[str], now: int) -> int:
        ...


class BlockContextEntropy:
    """
    以「區塊上下文」組成 seed（預設來源）

    組成：時間戳 | round_id | 參與人數 | 帳本高度（最後一筆事件 id）| 上一回合的 seed

    注意：這些值在呼叫當下都是公開的，掌握交易排序的人可以預測
    或操縱結果。要對抗這點請改用 CommitRevealEntropy。
    """

    def seed(self, db: Session, state: PoolState, participants: Sequence[str], now: int) -> int:
        height = db.query(func.max(EventLog.id)).scalar() or 0
        previous = db.query(RewardRecord.seed).filter(
            RewardRecord.round_id == state.round_id - 1
        ).scalar()
        payload = f"{now}|{state.round_id}|{len(participants)}|{height}|{previous or ''}"
        return sha256_int(payload)


class CommitRevealEntropy:
    """
    Commit-reveal 亂數來源（commitment 存在 EntropyCommitment 表）

    流程：
    1. 參與者加入前，owner 提交 commit(round_id, sha256(secret))
    2. 回合結束後，owner 公開 reveal(round_id, secret)
    3. distribute 時 seed = sha256(secret | round_id | 依加入順序的地址)

    secret 在參與者加入期間是隱藏的，所以加入順序無法用來操縱結果。
    提交時機（參與者加入前）由 RewardPool.commit_entropy 檢查。
    """

    @staticmethod
    def digest(secret: str) -> str:
        return hashlib.sha256(secret.encode("utf-8")).hexdigest()

    def get_commitment(self, db: Session, round_id: int) -> Optional[EntropyCommitment]:
        return db.query(EntropyCommitment).filter(
            EntropyCommitment.round_id == round_id
        ).first()

    def commit(self, db: Session, round_id: int, digest: str, now: int) -> EntropyCommitment:
        digest = digest.lower()
        if len(digest) != 64 or any(c not in "0123456789abcdef" for c in digest):
            raise CommitmentRejected(round_id, "digest must be a sha256 hex string")
        if self.get_commitment(db, round_id):
            raise CommitmentRejected(round_id, "round already has a commitment")

        commitment = EntropyCommitment(round_id=round_id, digest=digest, committed_at=now)
        db.add(commitment)
        db.flush()
        return commitment

    def reveal(self, db: Session, round_id: int, secret: str, now: int) -> EntropyCommitment:
        commitment = self.get_commitment(db, round_id)
        if commitment is None or self.digest(secret) != commitment.digest:
            raise InvalidReveal(round_id)

        commitment.secret = secret
        commitment.revealed_at = now
        db.flush()
        return commitment

    def is_committed(self, db: Session, round_id: int) -> bool:
        return self.get_commitment(db, round_id) is not None

    def is_revealed(self, db: Session, round_id: int) -> bool:
        commitment = self.get_commitment(db, round_id)
        return commitment is not None and commitment.secret is not None

    def seed(self, db: Session, state: PoolState, participants: Sequence[str], now: int) -> int:
        commitment = self.get_commitment(db, state.round_id)
        if commitment is None or commitment.secret is None:
            raise EntropyUnavailable(state.round_id)
        return sha256_int(f"{commitment.secret}|{state.round_id}|{','.join(participants)}")


def build_entropy_source(name: str):
    if name == "block_context":
        return BlockContextEntropy()
    if name == "commit_reveal":
        return CommitRevealEntropy()
    raise ValueError(f"Unknown entropy source: {name}")
