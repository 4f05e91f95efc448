"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

分類：
- 資格錯誤（Ineligibility）：呼叫者輸入或時間點不對，狀態完全不變
- 轉帳錯誤（Transfer）：收款方無法收款，整個 distribute 回滾
"""


class RewardPoolException(Exception):
    """所有 Reward Pool 異常的基類"""
    code = "reward_pool_error"


# ============ Join 相關異常 ============

class InvalidContribution(RewardPoolException):
    """投入金額必須是大於 0 的整數（最小單位）"""
    code = "invalid_contribution"

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Contribution must be a positive integer, got {amount!r}")


class AlreadyJoined(RewardPoolException):
    """同一個地址在同一回合只能加入一次"""
    code = "already_joined"

    def __init__(self, address, round_id):
        self.address = address
        self.round_id = round_id
        super().__init__(f"Address {address} already joined round {round_id}")


class RoundClosed(RewardPoolException):
    """回合時間已到，不再接受加入"""
    code = "round_closed"

    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} is closed")


class InsufficientFunds(RewardPoolException):
    """debit_wallets 模式下，錢包餘額不足以支付投入金額"""
    code = "insufficient_funds"

    def __init__(self, address, amount, balance):
        self.address = address
        self.amount = amount
        self.balance = balance
        super().__init__(f"Address {address} has {balance}, cannot contribute {amount}")


# ============ Distribute 相關異常 ============

class RoundNotFinished(RewardPoolException):
    """回合仍在進行中，還不能分配"""
    code = "round_not_finished"

    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} is not finished")


class NoParticipants(RewardPoolException):
    """回合內沒有任何參與者"""
    code = "no_participants"

    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} has no participants")


class NotAuthorized(RewardPoolException):
    """只有 owner 可以執行的操作（owner 策略下的 distribute、commit / reveal）"""
    code = "not_authorized"

    def __init__(self, caller):
        self.caller = caller
        super().__init__(f"Caller {caller} is not authorized for this operation")


class TransferFailed(RewardPoolException):
    """收款方無法收款（整個操作回滾）"""
    code = "transfer_failed"

    def __init__(self, address, amount):
        self.address = address
        self.amount = amount
        super().__init__(f"Transfer of {amount} to {address} failed")


class NothingToWithdraw(RewardPoolException):
    """pull-payment 模式下沒有可領取的獎金"""
    code = "nothing_to_withdraw"

    def __init__(self, address):
        self.address = address
        super().__init__(f"No pending payout for {address}")


# ============ 系統狀態異常 ============

class PoolNotInitialized(RewardPoolException):
    """PoolState 尚未建立（init_pool 沒被呼叫）"""
    code = "pool_not_initialized"

    def __init__(self):
        super().__init__("Reward pool has not been initialized")


# ============ Entropy 相關異常 ============

class EntropyUnavailable(RewardPoolException):
    """commit-reveal 尚未提交 commitment 或尚未公開 secret"""
    code = "entropy_unavailable"

    def __init__(self, round_id, reason="secret not revealed"):
        self.round_id = round_id
        self.reason = reason
        super().__init__(f"Entropy unavailable for round {round_id}: {reason}")


class InvalidReveal(RewardPoolException):
    """公開的 secret 與 commitment 不符"""
    code = "invalid_reveal"

    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Reveal does not match commitment for round {round_id}")


class CommitmentRejected(RewardPoolException):
    """commitment 時機或格式不對（必須在參與者加入前提交）"""
    code = "commitment_rejected"

    def __init__(self, round_id, reason):
        self.round_id = round_id
        self.reason = reason
        super().__init__(f"Commitment for round {round_id} rejected: {reason}")


class CommitRevealDisabled(RewardPoolException):
    """目前的 EntropySource 不是 commit-reveal"""
    code = "commit_reveal_disabled"

    def __init__(self):
        super().__init__("Commit-reveal entropy is not enabled for this pool")
