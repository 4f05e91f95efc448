"""
Pool API Endpoints

職責：
1. 參與者加入當前回合
2. 觸發分配（任何人或 owner，依設定）
3. pull-payment 領獎
4. commit-reveal 的 commitment 提交與公開（owner）
5. 查詢當前回合狀態
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    JoinRequest,
    JoinResponse,
    DistributeRequest,
    DistributeResponse,
    WithdrawRequest,
    WithdrawResponse,
    PoolStatusResponse,
    ParticipantResponse,
    EntropyCommitRequest,
    EntropyRevealRequest,
    EntropyCommitmentResponse,
)
from core.pool_manager import RewardPool
from core.exceptions import (
    AlreadyJoined,
    CommitmentRejected,
    CommitRevealDisabled,
    EntropyUnavailable,
    InsufficientFunds,
    InvalidContribution,
    InvalidReveal,
    NoParticipants,
    NotAuthorized,
    NothingToWithdraw,
    PoolNotInitialized,
    RoundClosed,
    RoundNotFinished,
    TransferFailed,
)
from api.dependencies import get_pool, http_error

router = APIRouter(prefix="/api/pool", tags=["pool"])
logger = logging.getLogger(__name__)


@router.post("/join", response_model=JoinResponse)
def join_pool(
    payload: JoinRequest,
    db: Session = Depends(get_db),
    pool: RewardPool = Depends(get_pool)
):
    """
    加入當前回合（value-bearing）

    前置條件：
    - 回合仍在開放中
    - 這個地址本回合尚未加入
    - （commit-reveal）本回合已有 commitment
    - （debit_wallets）錢包餘額足夠

    返回：
        - round_id / position: 加入的回合與順序
        - pool_balance: 加入後的獎池餘額
    """
    try:
        participant = pool.join(db, payload.address, payload.amount)
        return JoinResponse(
            round_id=participant.round_id,
            address=participant.address,
            contribution=participant.contribution,
            position=participant.position,
            pool_balance=pool.get_pool_balance(db)
        )

    except InvalidContribution as e:
        raise http_error(422, e)
    except (AlreadyJoined, RoundClosed, EntropyUnavailable, InsufficientFunds) as e:
        raise http_error(400, e)
    except PoolNotInitialized as e:
        raise http_error(503, e)
    except Exception as e:
        logger.error(f"Failed to join pool: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/distribute", response_model=DistributeResponse)
def distribute_reward(
    payload: Optional[DistributeRequest] = None,
    db: Session = Depends(get_db),
    pool: RewardPool = Depends(get_pool)
):
    """
    分配獎池

    前置條件：
    - 回合時間已到
    - 至少一位參與者
    - （owner 策略）caller 必須是 owner

    效果：
    - 得獎者收到整個獎池（push）或記入待領金額（pull）
    - 開始下一回合
    """
    caller = payload.caller if payload else None
    try:
        result = pool.distribute(db, caller)
        return DistributeResponse(
            round_id=result.round_id,
            winner=result.winner,
            amount=result.amount,
            winner_index=result.winner_index,
            participant_count=result.participant_count,
            seed=str(result.seed),
            next_round_id=result.next_round_id
        )

    except (RoundNotFinished, NoParticipants, EntropyUnavailable) as e:
        raise http_error(400, e)
    except NotAuthorized as e:
        raise http_error(403, e)
    except TransferFailed as e:
        raise http_error(409, e)
    except PoolNotInitialized as e:
        raise http_error(503, e)
    except Exception as e:
        logger.error(f"Failed to distribute reward: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/withdraw", response_model=WithdrawResponse)
def withdraw_reward(
    payload: WithdrawRequest,
    db: Session = Depends(get_db),
    pool: RewardPool = Depends(get_pool)
):
    """
    領取待領獎金（pull-payment 模式）
    """
    try:
        amount = pool.withdraw(db, payload.caller)
        return WithdrawResponse(address=payload.caller, amount=amount)

    except NothingToWithdraw as e:
        raise http_error(400, e)
    except TransferFailed as e:
        raise http_error(409, e)
    except Exception as e:
        logger.error(f"Failed to withdraw: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=PoolStatusResponse)
def get_pool_status(db: Session = Depends(get_db), pool: RewardPool = Depends(get_pool)):
    """
    取得當前回合完整狀態

    顯示層只要讀這一個 endpoint 再加上事件紀錄，就能重建所有畫面
    """
    try:
        return PoolStatusResponse(**pool.get_status(db))

    except PoolNotInitialized as e:
        raise http_error(503, e)


@router.get("/participants", response_model=List[str])
def get_participants(db: Session = Depends(get_db), pool: RewardPool = Depends(get_pool)):
    try:
        return pool.get_participants(db)
    except PoolNotInitialized as e:
        raise http_error(503, e)


@router.get("/participants/{address}", response_model=ParticipantResponse)
def get_participant(address: str, db: Session = Depends(get_db), pool: RewardPool = Depends(get_pool)):
    """
    查詢某地址在當前回合是否已加入、投入多少
    """
    try:
        contribution = pool.get_contribution(db, address)
        return ParticipantResponse(
            round_id=pool.get_round_id(db),
            address=address,
            joined=contribution > 0,
            contribution=contribution
        )
    except PoolNotInitialized as e:
        raise http_error(503, e)


@router.get("/balance")
def get_pool_balance(db: Session = Depends(get_db), pool: RewardPool = Depends(get_pool)):
    try:
        return {"pool_balance": pool.get_pool_balance(db)}
    except PoolNotInitialized as e:
        raise http_error(503, e)


@router.get("/round-id")
def get_round_id(db: Session = Depends(get_db), pool: RewardPool = Depends(get_pool)):
    try:
        return {"round_id": pool.get_round_id(db)}
    except PoolNotInitialized as e:
        raise http_error(503, e)


@router.get("/round-start")
def get_round_start(db: Session = Depends(get_db), pool: RewardPool = Depends(get_pool)):
    """round_start 為 null 代表本回合尚未開始計時"""
    try:
        return {"round_start": pool.get_round_start(db)}
    except PoolNotInitialized as e:
        raise http_error(503, e)


@router.get("/round-duration")
def get_round_duration(db: Session = Depends(get_db), pool: RewardPool = Depends(get_pool)):
    try:
        return {"round_duration": pool.get_round_duration(db)}
    except PoolNotInitialized as e:
        raise http_error(503, e)


def _commitment_response(round_id: int, commitment) -> EntropyCommitmentResponse:
    if commitment is None:
        return EntropyCommitmentResponse(round_id=round_id, digest=None, committed_at=None, revealed=False)
    return EntropyCommitmentResponse(
        round_id=round_id,
        digest=commitment.digest,
        committed_at=commitment.committed_at,
        revealed=commitment.secret is not None,
        secret=commitment.secret
    )


@router.post("/entropy/commit", response_model=EntropyCommitmentResponse)
def commit_entropy(
    payload: EntropyCommitRequest,
    db: Session = Depends(get_db),
    pool: RewardPool = Depends(get_pool)
):
    """
    提交某回合的 commitment = sha256(secret)（只有 owner）

    必須在該回合有人加入之前提交
    """
    try:
        commitment = pool.commit_entropy(db, payload.caller, payload.round_id, payload.digest)
        return _commitment_response(payload.round_id, commitment)

    except (CommitRevealDisabled, CommitmentRejected) as e:
        raise http_error(400, e)
    except NotAuthorized as e:
        raise http_error(403, e)
    except PoolNotInitialized as e:
        raise http_error(503, e)
    except Exception as e:
        logger.error(f"Failed to commit entropy: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/entropy/reveal", response_model=EntropyCommitmentResponse)
def reveal_entropy(
    payload: EntropyRevealRequest,
    db: Session = Depends(get_db),
    pool: RewardPool = Depends(get_pool)
):
    """
    公開當前回合的 secret（只有 owner，回合結束後）
    """
    try:
        commitment = pool.reveal_entropy(db, payload.caller, payload.round_id, payload.secret)
        return _commitment_response(payload.round_id, commitment)

    except (CommitRevealDisabled, RoundNotFinished, InvalidReveal) as e:
        raise http_error(400, e)
    except NotAuthorized as e:
        raise http_error(403, e)
    except PoolNotInitialized as e:
        raise http_error(503, e)
    except Exception as e:
        logger.error(f"Failed to reveal entropy: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/entropy/{round_id}", response_model=EntropyCommitmentResponse)
def get_entropy_commitment(round_id: int, db: Session = Depends(get_db), pool: RewardPool = Depends(get_pool)):
    try:
        return _commitment_response(round_id, pool.get_commitment(db, round_id))
    except CommitRevealDisabled as e:
        raise http_error(400, e)
