"""
RewardPool：管理獎池回合的完整生命週期

職責：
1. 初始化獎池（第 1 回合）
2. join：參與者投入金額
3. distribute：選出得獎者、寫入歷史、重置回合、轉出獎金
4. withdraw：pull-payment 模式下領取獎金
5. commit_entropy / reveal_entropy：commit-reveal 亂數來源的 owner 操作
6. 查詢回合資訊

原則：
- 所有寫入都經過 @transactional，不是全部生效就是全部回滾
- 先檢查資格再動狀態：資格錯誤一律不改變任何狀態
- Effects before interaction：distribute 先把帳本、歷史、回合都寫好，
  最後才呼叫對外轉帳
- 沒有全域狀態：呼叫者明確持有一個 RewardPool 實例
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from database import transactional
from models import EntropyCommitment, EventType, Participant, PoolState, POOL_STATE_ID
from core import state_machine
from core.locks import with_pool_lock, with_payout_lock
from core.substrate import (
    BlockContextEntropy,
    Clock,
    CommitRevealEntropy,
    EntropySource,
    SystemClock,
    build_entropy_source,
)
from core.exceptions import (
    AlreadyJoined,
    CommitmentRejected,
    CommitRevealDisabled,
    EntropyUnavailable,
    InvalidContribution,
    InvalidReveal,
    NoParticipants,
    NotAuthorized,
    NothingToWithdraw,
    PoolNotInitialized,
    RoundClosed,
    RoundNotFinished,
)
from services import ledger_service, history_service
from services.event_service import emit_event
from services.payout_service import PayoutGateway, WalletGateway, credit_pending_payout, debit_wallet
from services.selection_service import select_winner

logger = logging.getLogger(__name__)

PERMISSIONLESS = "permissionless"
OWNER_ONLY = "owner"
DISTRIBUTE_POLICIES = (PERMISSIONLESS, OWNER_ONLY)

PUSH = "push"
PULL = "pull"
PAYOUT_MODES = (PUSH, PULL)


@dataclass(frozen=True)
class DistributionResult:
    round_id: int
    winner: str
    amount: int
    winner_index: int
    participant_count: int
    seed: int
    next_round_id: int


class RewardPool:
    """獎池引擎"""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        entropy: Optional[EntropySource] = None,
        gateway: Optional[PayoutGateway] = None,
        round_duration: int = 600,
        round_start_policy: str = state_machine.FIRST_JOIN,
        distribute_policy: str = PERMISSIONLESS,
        payout_mode: str = PUSH,
        owner: Optional[str] = None,
        debit_wallets: bool = False,
    ):
        if round_duration <= 0:
            raise ValueError(f"round_duration must be positive, got {round_duration}")
        if round_start_policy not in state_machine.ROUND_START_POLICIES:
            raise ValueError(f"Unknown round start policy: {round_start_policy}")
        if distribute_policy not in DISTRIBUTE_POLICIES:
            raise ValueError(f"Unknown distribute policy: {distribute_policy}")
        if payout_mode not in PAYOUT_MODES:
            raise ValueError(f"Unknown payout mode: {payout_mode}")
        if distribute_policy == OWNER_ONLY and not owner:
            raise ValueError("Owner-only distribution requires an owner address")
        if isinstance(entropy, CommitRevealEntropy) and not owner:
            raise ValueError("Commit-reveal entropy requires an owner address")

        self.clock = clock or SystemClock()
        self.entropy = entropy or BlockContextEntropy()
        self.gateway = gateway or WalletGateway()
        self.round_duration = round_duration
        self.round_start_policy = round_start_policy
        self.distribute_policy = distribute_policy
        self.payout_mode = payout_mode
        self.owner = owner
        self.debit_wallets = debit_wallets

    @classmethod
    def from_settings(cls, settings, clock: Optional[Clock] = None,
                      gateway: Optional[PayoutGateway] = None) -> "RewardPool":
        return cls(
            clock=clock,
            entropy=build_entropy_source(settings.entropy_source),
            gateway=gateway,
            round_duration=settings.round_duration,
            round_start_policy=settings.round_start_policy,
            distribute_policy=settings.distribute_policy,
            payout_mode=settings.payout_mode,
            owner=settings.owner_address,
            debit_wallets=settings.debit_wallets,
        )

    # ============ 內部 helpers ============

    def _lock_state(self, db: Session) -> PoolState:
        state = with_pool_lock(db).first()
        if not state:
            raise PoolNotInitialized()
        return state

    def _get_state(self, db: Session) -> PoolState:
        state = db.query(PoolState).filter(PoolState.id == POOL_STATE_ID).first()
        if not state:
            raise PoolNotInitialized()
        return state

    def _commit_reveal(self) -> CommitRevealEntropy:
        if not isinstance(self.entropy, CommitRevealEntropy):
            raise CommitRevealDisabled()
        return self.entropy

    def _require_owner(self, state: PoolState, caller: Optional[str]) -> None:
        if not state.owner or caller != state.owner:
            logger.warning(f"Owner-only operation rejected for {caller}")
            raise NotAuthorized(caller)

    def _warn_on_config_drift(self, state: PoolState) -> None:
        if state.round_duration != self.round_duration:
            logger.warning(
                f"Configured round_duration {self.round_duration}s ignored: "
                f"existing pool uses {state.round_duration}s"
            )
        if state.owner != self.owner:
            logger.warning(
                f"Configured owner {self.owner} ignored: existing pool owner is {state.owner}"
            )

    # ============ 寫入操作 ============

    @transactional
    def init_pool(self, db: Session) -> PoolState:
        """
        建立第 1 回合（冪等：已存在就直接返回）

        已存在的 PoolState 保留原本的 round_duration 與 owner；
        設定值不同時只記錄 warning。

        流程：
        1. 檢查 PoolState 是否已存在
        2. 建立 PoolState（round_id=1，依策略決定是否開始計時）
        3. 記錄 NEW_ROUND_STARTED 事件
        """
        state = with_pool_lock(db).first()
        if state:
            self._warn_on_config_drift(state)
            return state

        now = self.clock.now()
        state = PoolState(
            id=POOL_STATE_ID,
            round_id=1,
            round_start=state_machine.initial_round_start(self.round_start_policy, now),
            round_duration=self.round_duration,
            pool_balance=0,
            owner=self.owner,
        )
        db.add(state)
        db.flush()

        emit_event(db, EventType.NEW_ROUND_STARTED, state.round_id, round_id=state.round_id)
        logger.info(
            f"Initialized reward pool: round 1, duration {self.round_duration}s, "
            f"start policy {self.round_start_policy}"
        )
        return state

    @transactional
    def join(self, db: Session, caller: str, amount: int) -> Participant:
        """
        加入當前回合

        前置條件（依序檢查）：
        1. amount 是大於 0 的整數
        2. 回合仍在開放中
        3. caller 尚未加入本回合
        4. （commit-reveal）本回合已有 commitment
        5. （debit_wallets）錢包餘額足夠

        流程：
        1. 鎖定 PoolState
        2. 驗證前置條件
        3. 從錢包扣款（debit_wallets）、寫入帳本、增加 pool_balance
        4. 如果是本回合第一位且尚未計時 → 開始計時
        5. 記錄 PARTICIPANT_JOINED 事件

        異常：
            InvalidContribution / RoundClosed / AlreadyJoined / EntropyUnavailable / InsufficientFunds
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidContribution(amount)

        state = self._lock_state(db)
        now = self.clock.now()

        if not state_machine.is_open(state, now):
            raise RoundClosed(state.round_id)

        if ledger_service.find_participant(state.round_id, caller, db):
            raise AlreadyJoined(caller, state.round_id)

        if isinstance(self.entropy, CommitRevealEntropy) and not self.entropy.is_committed(db, state.round_id):
            raise EntropyUnavailable(state.round_id, "no commitment yet")

        if self.debit_wallets:
            debit_wallet(caller, amount, db)

        participant = ledger_service.add_participant(state.round_id, caller, amount, now, db)
        state.pool_balance = state.pool_balance + amount

        if state_machine.start_timer(state, now):
            logger.info(f"Round {state.round_id} timer started at {now}")

        emit_event(db, EventType.PARTICIPANT_JOINED, state.round_id, address=caller, amount=amount)
        db.flush()

        logger.info(f"{caller} joined round {state.round_id} with {amount}")
        return participant

    @transactional
    def distribute(self, db: Session, caller: Optional[str] = None) -> DistributionResult:
        """
        分配獎池給一位得獎者，並開始下一回合

        前置條件（依序檢查，各自是不同的錯誤）：
        1. 回合已結束（否則 RoundNotFinished）
        2. 至少一位參與者（否則 NoParticipants）
        3. owner 策略下 caller 必須是 owner（否則 NotAuthorized）

        流程（順序很重要）：
        1. 由 EntropySource 取得 seed，index = seed mod 人數
        2. 寫入 RewardRecord
        3. 清空帳本
        4. 推進回合（round_id + 1、餘額歸零、重置 round_start）
        5. 記錄 REWARD_DISTRIBUTED / NEW_ROUND_STARTED 事件並 flush
        6. 最後才轉帳（push）或記入待領金額（pull）

        轉帳失敗時整個 transaction 回滾，回合維持可分配狀態。
        """
        state = self._lock_state(db)
        now = self.clock.now()
        round_id = state.round_id

        if state_machine.is_open(state, now):
            logger.warning(f"Distribution rejected: round {round_id} is still open")
            raise RoundNotFinished(round_id)

        participants = ledger_service.get_participants(round_id, db)
        if not participants:
            logger.warning(f"Distribution rejected: round {round_id} has no participants")
            raise NoParticipants(round_id)

        if self.distribute_policy == OWNER_ONLY and caller != state.owner:
            logger.warning(f"Distribution rejected: {caller} is not the owner")
            raise NotAuthorized(caller)

        seed = self.entropy.seed(db, state, participants, now)
        selection = select_winner(seed, participants)
        amount = state.pool_balance

        # Effects
        history_service.record_reward(
            round_id=round_id,
            winner=selection.winner,
            amount=amount,
            winner_index=selection.winner_index,
            participant_count=selection.participant_count,
            seed=seed,
            distributed_at=now,
            db=db,
        )
        ledger_service.clear_ledger(round_id, db)
        emit_event(
            db, EventType.REWARD_DISTRIBUTED, round_id,
            round_id=round_id, winner=selection.winner, amount=amount
        )
        next_round_id = state_machine.advance_round(state, now, self.round_start_policy)
        emit_event(db, EventType.NEW_ROUND_STARTED, next_round_id, round_id=next_round_id)
        db.flush()

        # Interaction
        if self.payout_mode == PULL:
            credit_pending_payout(selection.winner, amount, db)
        else:
            self.gateway.transfer(db, selection.winner, amount)

        logger.info(
            f"Round {round_id} distributed: {amount} to {selection.winner} "
            f"(index {selection.winner_index} of {selection.participant_count}); "
            f"round {next_round_id} started"
        )
        return DistributionResult(
            round_id=round_id,
            winner=selection.winner,
            amount=amount,
            winner_index=selection.winner_index,
            participant_count=selection.participant_count,
            seed=seed,
            next_round_id=next_round_id,
        )

    @transactional
    def withdraw(self, db: Session, caller: str) -> int:
        """
        領取待領獎金（pull-payment）

        流程：
        1. 鎖定 caller 的 PendingPayout
        2. 歸零並記錄 REWARD_WITHDRAWN 事件
        3. 最後才轉帳

        返回：
            領取的金額

        異常：
            NothingToWithdraw: 沒有待領金額
        """
        pending = with_payout_lock(caller, db).first()
        if not pending or pending.amount <= 0:
            raise NothingToWithdraw(caller)

        amount = pending.amount
        pending.amount = 0
        emit_event(db, EventType.REWARD_WITHDRAWN, None, address=caller, amount=amount)
        db.flush()

        self.gateway.transfer(db, caller, amount)

        logger.info(f"{caller} withdrew {amount}")
        return amount

    @transactional
    def commit_entropy(self, db: Session, caller: str, round_id: int, digest: str) -> EntropyCommitment:
        """
        提交某回合的 commitment（commit-reveal，只有 owner 可以）

        時機：
        - 當前回合：必須還沒有任何參與者（加入順序公開後就不能再選 secret）
        - 之後的回合：隨時可以預先提交
        - 已經結束的回合：拒絕

        異常：
            CommitRevealDisabled / NotAuthorized / CommitmentRejected
        """
        source = self._commit_reveal()
        state = self._lock_state(db)
        self._require_owner(state, caller)

        if round_id < state.round_id:
            raise CommitmentRejected(round_id, "round already finished")
        if round_id == state.round_id and ledger_service.count_participants(round_id, db) > 0:
            raise CommitmentRejected(round_id, "round already has participants")

        commitment = source.commit(db, round_id, digest, self.clock.now())
        emit_event(db, EventType.ENTROPY_COMMITTED, round_id, digest=commitment.digest)

        logger.info(f"Entropy committed for round {round_id}")
        return commitment

    @transactional
    def reveal_entropy(self, db: Session, caller: str, round_id: int, secret: str) -> EntropyCommitment:
        """
        公開當前回合的 secret（只有 owner 可以）

        回合結束前不能公開，否則參與者可以依 secret 決定要不要加入。

        異常：
            CommitRevealDisabled / NotAuthorized / RoundNotFinished / InvalidReveal
        """
        source = self._commit_reveal()
        state = self._lock_state(db)
        self._require_owner(state, caller)

        if round_id != state.round_id:
            raise InvalidReveal(round_id)
        if state_machine.is_open(state, self.clock.now()):
            raise RoundNotFinished(round_id)

        commitment = source.reveal(db, round_id, secret, self.clock.now())
        emit_event(db, EventType.ENTROPY_REVEALED, round_id, secret=secret)

        logger.info(f"Entropy revealed for round {round_id}")
        return commitment

    # ============ 查詢 ============

    def get_state(self, db: Session) -> PoolState:
        return self._get_state(db)

    def get_round_id(self, db: Session) -> int:
        return self._get_state(db).round_id

    def get_round_start(self, db: Session) -> Optional[int]:
        return self._get_state(db).round_start

    def get_round_duration(self, db: Session) -> int:
        return self._get_state(db).round_duration

    def get_pool_balance(self, db: Session) -> int:
        return self._get_state(db).pool_balance

    def get_participants(self, db: Session) -> List[str]:
        return ledger_service.get_participants(self._get_state(db).round_id, db)

    def get_contribution(self, db: Session, address: str) -> int:
        return ledger_service.get_contribution(self._get_state(db).round_id, address, db)

    def has_joined(self, db: Session, address: str) -> bool:
        round_id = self._get_state(db).round_id
        return ledger_service.find_participant(round_id, address, db) is not None

    def is_open(self, db: Session) -> bool:
        return state_machine.is_open(self._get_state(db), self.clock.now())

    def is_eligible_for_distribution(self, db: Session) -> bool:
        state = self._get_state(db)
        count = ledger_service.count_participants(state.round_id, db)
        return state_machine.is_eligible_for_distribution(state, count, self.clock.now())

    def get_reward_recipient(self, db: Session, round_id: int) -> Optional[str]:
        return history_service.get_reward_recipient(round_id, db)

    def get_commitment(self, db: Session, round_id: int) -> Optional[EntropyCommitment]:
        return self._commit_reveal().get_commitment(db, round_id)

    def get_status(self, db: Session) -> Dict[str, Any]:
        """
        當前回合的完整狀態（給顯示層一次讀完）
        """
        state = self._get_state(db)
        now = self.clock.now()
        participants = ledger_service.get_participants(state.round_id, db)
        return {
            "round_id": state.round_id,
            "round_start": state.round_start,
            "round_duration": state.round_duration,
            "ends_at": state_machine.ends_at(state),
            "time_remaining": state_machine.time_remaining(state, now),
            "phase": state_machine.get_phase(state, now),
            "is_open": state_machine.is_open(state, now),
            "eligible": state_machine.is_eligible_for_distribution(state, len(participants), now),
            "pool_balance": state.pool_balance,
            "participants": participants,
            "round_start_policy": self.round_start_policy,
            "distribute_policy": self.distribute_policy,
            "payout_mode": self.payout_mode,
            "commit_reveal": isinstance(self.entropy, CommitRevealEntropy),
            "debit_wallets": self.debit_wallets,
            "owner": state.owner,
        }
