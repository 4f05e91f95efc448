"""
API 的 request / response 模型（Pydantic）

金額一律是最小單位的整數（例如 wei）
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from models import RoundPhase


class JoinRequest(BaseModel):
    address: str = Field(..., min_length=1, max_length=128)
    amount: int = Field(..., gt=0)


class JoinResponse(BaseModel):
    round_id: int
    address: str
    contribution: int
    position: int
    pool_balance: int


class DistributeRequest(BaseModel):
    caller: Optional[str] = Field(None, max_length=128)


class DistributeResponse(BaseModel):
    round_id: int
    winner: str
    amount: int
    winner_index: int
    participant_count: int
    seed: str
    next_round_id: int


class WithdrawRequest(BaseModel):
    caller: str = Field(..., min_length=1, max_length=128)


class WithdrawResponse(BaseModel):
    address: str
    amount: int


class PoolStatusResponse(BaseModel):
    round_id: int
    round_start: Optional[int]
    round_duration: int
    ends_at: Optional[int]
    time_remaining: Optional[int]
    phase: RoundPhase
    is_open: bool
    eligible: bool
    pool_balance: int
    participants: List[str]
    round_start_policy: str
    distribute_policy: str
    payout_mode: str
    commit_reveal: bool
    debit_wallets: bool
    owner: Optional[str]


class ParticipantResponse(BaseModel):
    round_id: int
    address: str
    joined: bool
    contribution: int


class RewardRecordResponse(BaseModel):
    round_id: int
    winner: str
    amount: int
    winner_index: int
    participant_count: int
    seed: str
    distributed_at: int


class RewardRecipientResponse(BaseModel):
    round_id: int
    recipient: Optional[str]
    record: Optional[RewardRecordResponse] = None


class EventResponse(BaseModel):
    id: int
    event_type: str
    round_id: Optional[int]
    data: Dict[str, Any]
    created_at: Optional[datetime]


class WalletResponse(BaseModel):
    address: str
    balance: int
    pending_payout: int


class EntropyCommitRequest(BaseModel):
    caller: str = Field(..., min_length=1, max_length=128)
    round_id: int = Field(..., ge=1)
    digest: str = Field(..., min_length=64, max_length=64)


class EntropyRevealRequest(BaseModel):
    caller: str = Field(..., min_length=1, max_length=128)
    round_id: int = Field(..., ge=1)
    secret: str = Field(..., min_length=1, max_length=256)


class EntropyCommitmentResponse(BaseModel):
    round_id: int
    digest: Optional[str]
    committed_at: Optional[int]
    revealed: bool
    # 回合結束並公開後才會有值
    secret: Optional[str] = None
