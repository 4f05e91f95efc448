"""
Payout 服務：把獎金轉給得獎者

PayoutGateway 是「對外轉帳」這個互動的抽象。預設的 WalletGateway
把金額記到 Wallet 表上，並在同一個 DB transaction 內完成，
所以轉帳失敗時整個 distribute 會跟著回滾。

預設情況下 join 的投入金額來自鏈外（不動 Wallet）；
開啟 debit_wallets 時，join 會在同一個 transaction 內從 Wallet 扣款。

收款方可以註冊 hook（模擬收款合約的 receive 邏輯），hook 會在轉帳
過程中被呼叫；hook 丟出的異常會讓轉帳失敗。
"""
import logging
from typing import Callable, Dict, Protocol

from sqlalchemy.orm import Session

from core.exceptions import InsufficientFunds, TransferFailed
from models import PendingPayout, Wallet

logger = logging.getLogger(__name__)

RecipientHook = Callable[[Session, str, int], None]


class PayoutGateway(Protocol):
    def transfer(self, db: Session, to: str, amount: int) -> None:
        ...


def get_or_create_wallet(address: str, db: Session) -> Wallet:
    wallet = db.query(Wallet).filter(Wallet.address == address).first()
    if not wallet:
        wallet = Wallet(address=address, balance=0, accepts_payments=True)
        db.add(wallet)
        db.flush()
    return wallet


def get_wallet_balance(address: str, db: Session) -> int:
    wallet = db.query(Wallet).filter(Wallet.address == address).first()
    return wallet.balance if wallet else 0


class WalletGateway:
    """預設的轉帳實作：入帳到 Wallet 表"""

    def __init__(self):
        self._hooks: Dict[str, RecipientHook] = {}

    def register_hook(self, address: str, hook: RecipientHook) -> None:
        self._hooks[address] = hook

    def unregister_hook(self, address: str) -> None:
        self._hooks.pop(address, None)

    def transfer(self, db: Session, to: str, amount: int) -> None:
        """
        轉帳

        流程：
        1. 找到（或建立）收款 Wallet
        2. 收款方拒收 → TransferFailed
        3. 入帳
        4. 呼叫收款方 hook（可能重入 RewardPool）

        異常：
            TransferFailed: 收款方不接受款項
        """
        wallet = get_or_create_wallet(to, db)
        if not wallet.accepts_payments:
            raise TransferFailed(to, amount)

        wallet.balance = wallet.balance + amount
        db.flush()
        logger.info(f"Transferred {amount} to {to}")

        hook = self._hooks.get(to)
        if hook is not None:
            hook(db, to, amount)


# ============ Pull-payment ============

def credit_pending_payout(address: str, amount: int, db: Session) -> int:
    """
    累加得獎者可領取的金額

    返回：
        累加後的待領金額
    """
    pending = db.query(PendingPayout).filter(PendingPayout.address == address).first()
    if not pending:
        pending = PendingPayout(address=address, amount=0)
        db.add(pending)
    pending.amount = pending.amount + amount
    db.flush()
    return pending.amount


def get_pending_payout(address: str, db: Session) -> int:
    pending = db.query(PendingPayout).filter(PendingPayout.address == address).first()
    return pending.amount if pending else 0


# ============ 錢包扣款（debit_wallets 模式） ============

def deposit(address: str, amount: int, db: Session) -> int:
    """
    存入錢包（由外部系統入金時呼叫）

    返回：
        存入後的餘額
    """
    if amount <= 0:
        raise ValueError(f"Deposit must be positive, got {amount}")
    wallet = get_or_create_wallet(address, db)
    wallet.balance = wallet.balance + amount
    db.flush()
    return wallet.balance


def debit_wallet(address: str, amount: int, db: Session) -> int:
    """
    從錢包扣款（join 投入金額時，跟 join 同一個 transaction）

    異常：
        InsufficientFunds: 餘額不足
    """
    wallet = db.query(Wallet).filter(Wallet.address == address).first()
    balance = wallet.balance if wallet else 0
    if balance < amount:
        raise InsufficientFunds(address, amount, balance)

    wallet.balance = balance - amount
    db.flush()
    return wallet.balance
