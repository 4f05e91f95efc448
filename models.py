"""
資料模型

Reward Pool 的持久化狀態：
- PoolState：唯一一筆的「當前回合」狀態（round_id / round_start / 餘額）
- Participant：當前回合的參與者帳本
- RewardRecord：每個已完成回合的得獎紀錄（append-only）
- PendingPayout：pull-payment 模式下尚未領取的獎金
- Wallet：外部帳戶餘額（模擬鏈上地址的餘額）
- EventLog：事件紀錄（NEW_ROUND_STARTED / PARTICIPANT_JOINED / ...）
- EntropyCommitment：commit-reveal 亂數來源的 commitment 與公開的 secret
"""
from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.types import TypeDecorator

from database import Base

POOL_STATE_ID = 1


def _utcnow():
    return datetime.now(timezone.utc)


class Amount(TypeDecorator):
    """
    以十進位字串儲存的整數金額（最小單位，例如 wei）

    SQLite 的 INTEGER 只有 64 bits，NUMERIC 會轉成浮點數，
    所以用字串保存，讀回來一律是 Python int。
    """
    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class RoundPhase(str, enum.Enum):
    OPEN = "OPEN"
    AWAITING_DISTRIBUTION = "AWAITING_DISTRIBUTION"


class EventType(str, enum.Enum):
    NEW_ROUND_STARTED = "NEW_ROUND_STARTED"
    PARTICIPANT_JOINED = "PARTICIPANT_JOINED"
    REWARD_DISTRIBUTED = "REWARD_DISTRIBUTED"
    REWARD_WITHDRAWN = "REWARD_WITHDRAWN"
    ENTROPY_COMMITTED = "ENTROPY_COMMITTED"
    ENTROPY_REVEALED = "ENTROPY_REVEALED"


class PoolState(Base):
    __tablename__ = "pool_state"

    id = Column(Integer, primary_key=True, default=POOL_STATE_ID)
    round_id = Column(Integer, nullable=False, default=1)
    # None 代表「尚未開始計時」（first_join 策略下，第一位參與者加入才開始）
    round_start = Column(Integer, nullable=True)
    round_duration = Column(Integer, nullable=False)
    pool_balance = Column(Amount, nullable=False, default=0)
    owner = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("round_id", "address", name="uq_participant_round_address"),
        UniqueConstraint("round_id", "position", name="uq_participant_round_position"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(Integer, nullable=False, index=True)
    address = Column(String(128), nullable=False)
    contribution = Column(Amount, nullable=False)
    position = Column(Integer, nullable=False)
    joined_at = Column(Integer, nullable=False)


class RewardRecord(Base):
    __tablename__ = "reward_records"

    round_id = Column(Integer, primary_key=True, autoincrement=False)
    winner = Column(String(128), nullable=False, index=True)
    amount = Column(Amount, nullable=False)
    winner_index = Column(Integer, nullable=False)
    participant_count = Column(Integer, nullable=False)
    seed = Column(String(100), nullable=False)
    distributed_at = Column(Integer, nullable=False)


class PendingPayout(Base):
    __tablename__ = "pending_payouts"

    address = Column(String(128), primary_key=True)
    amount = Column(Amount, nullable=False, default=0)


class Wallet(Base):
    __tablename__ = "wallets"

    address = Column(String(128), primary_key=True)
    balance = Column(Amount, nullable=False, default=0)
    accepts_payments = Column(Boolean, nullable=False, default=True)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(40), nullable=False, index=True)
    round_id = Column(Integer, nullable=True, index=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class EntropyCommitment(Base):
    """
    commit-reveal 的 commitment（每回合一筆）

    secret 在 reveal 之前是 None；存在資料庫裡，重啟或多個 worker 都看得到。
    """
    __tablename__ = "entropy_commitments"

    round_id = Column(Integer, primary_key=True, autoincrement=False)
    digest = Column(String(64), nullable=False)
    secret = Column(String(256), nullable=True)
    committed_at = Column(Integer, nullable=False)
    revealed_at = Column(Integer, nullable=True)
