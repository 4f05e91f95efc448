from sqlalchemy import create_engine, event
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./reward_pool.db"

    # 回合設定：預設 10 分鐘一輪
    round_duration: int = 600
    round_start_policy: str = "first_join"      # first_join | creation
    distribute_policy: str = "permissionless"   # permissionless | owner
    payout_mode: str = "push"                   # push | pull
    entropy_source: str = "block_context"       # block_context | commit_reveal
    debit_wallets: bool = False                 # join 時從 Wallet 扣款
    owner_address: Optional[str] = None

    cors_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# 這允許多執行緒存取同一個 SQLite 連線（FastAPI 的多執行緒環境需要）
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)


def use_immediate_transactions(engine):
    """
    SQLite：每個 transaction 一開始就取得寫入鎖（BEGIN IMMEDIATE）

    SQLite 沒有 SELECT ... FOR UPDATE，pysqlite 又會把 BEGIN 延到第一個寫入，
    兩個同時進來的 join 會讀到同一個 pool_balance。
    改成 BEGIN IMMEDIATE 後，第二個 transaction 會在開始時等第一個 commit。
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


if settings.database_url.startswith("sqlite"):
    use_immediate_transactions(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# session.info 裡記錄目前 transaction 的巢狀深度
_TX_DEPTH_KEY = "transactional_depth"


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs) -> Optional[Session]:
    if 'db' in kwargs and isinstance(kwargs['db'], Session):
        return kwargs['db']
    for arg in args[:2]:
        if isinstance(arg, Session):
            return arg
    return None


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def some_business_logic(db: Session, ...):
            state = with_pool_lock(db).first()
            state.pool_balance += amount
            # 不需要手動 commit，decorator 會處理

    也可以用在 method 上（self 之後的第一個參數是 db）：
        class RewardPool:
            @transactional
            def join(self, db: Session, ...): ...

    如果函式內發生異常：
        - 自動 rollback
        - 異常會被重新拋出（讓上層處理）

    巢狀呼叫（例如 payout 過程中收款方重入 join / distribute）：
        - 只有最外層負責 commit / rollback
        - 內層共用同一個 transaction，外層失敗時內層的變更也一起回滾

    注意：
        - db: Session 必須是第一個參數（method 則是 self 之後）或 db= keyword
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        depth = db.info.get(_TX_DEPTH_KEY, 0)
        db.info[_TX_DEPTH_KEY] = depth + 1
        try:
            result = func(*args, **kwargs)
            if depth == 0:
                db.commit()
            return result
        except Exception as e:
            if depth == 0:
                logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
                db.rollback()
            raise
        finally:
            db.info[_TX_DEPTH_KEY] = depth

    return wrapper
