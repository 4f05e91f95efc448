"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）。
所有 join / distribute / withdraw 都先鎖住 PoolState 這一列，
等於把所有寫入操作排成單一順序。
SQLite 沒有行級鎖，改由 database.use_immediate_transactions 在 transaction 開始時取得寫入鎖。
"""
from sqlalchemy.orm import Session, Query

from models import PoolState, PendingPayout, POOL_STATE_ID


def with_pool_lock(db: Session) -> Query:
    """
    鎖定 PoolState（行級鎖）

    使用場景：
    - join：檢查回合是否開放並寫入帳本
    - distribute：選出得獎者、重置回合
    - 需要確保 PoolState 在整個 transaction 期間不被其他請求修改

    範例：
        state = with_pool_lock(db).first()
        if not state:
            raise PoolNotInitialized()
        state.pool_balance += amount

    返回：
        Query object（需要呼叫 .first() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(PoolState).filter(
        PoolState.id == POOL_STATE_ID
    ).with_for_update(nowait=False)


def with_payout_lock(address: str, db: Session) -> Query:
    """
    鎖定某地址的 PendingPayout（pull-payment 領取時使用）

    防止同一筆獎金被重複領取
    """
    return db.query(PendingPayout).filter(
        PendingPayout.address == address
    ).with_for_update(nowait=False)
