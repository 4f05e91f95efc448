"""
參與者帳本服務：當前回合的 address → contribution 對應

純資料存取邏輯，不負責狀態轉換（由 RewardPool 負責）
"""
from typing import List

from sqlalchemy.orm import Session

from models import Participant


def get_participants(round_id: int, db: Session) -> List[str]:
    """
    依加入順序取得回合內所有參與者地址

    返回：
        地址列表；沒有人加入時為空列表
    """
    rows = db.query(Participant.address).filter(
        Participant.round_id == round_id
    ).order_by(Participant.position).all()
    return [row.address for row in rows]


def count_participants(round_id: int, db: Session) -> int:
    return db.query(Participant).filter(Participant.round_id == round_id).count()


def find_participant(round_id: int, address: str, db: Session):
    return db.query(Participant).filter(
        Participant.round_id == round_id,
        Participant.address == address
    ).first()


def get_contribution(round_id: int, address: str, db: Session) -> int:
    participant = find_participant(round_id, address, db)
    return participant.contribution if participant else 0


def add_participant(round_id: int, address: str, amount: int, joined_at: int, db: Session) -> Participant:
    """
    把新參與者加到帳本最後面

    注意：
    - 不檢查重複（由呼叫者先檢查，DB 還有 unique constraint 保底）
    - Flush 但不 commit（讓外層 transaction 處理）
    """
    position = count_participants(round_id, db)
    participant = Participant(
        round_id=round_id,
        address=address,
        contribution=amount,
        position=position,
        joined_at=joined_at
    )
    db.add(participant)
    db.flush()
    return participant


def total_contributions(round_id: int, db: Session) -> int:
    """所有投入金額加總（應該等於 PoolState.pool_balance）"""
    rows = db.query(Participant.contribution).filter(Participant.round_id == round_id).all()
    return sum(row.contribution for row in rows)


def clear_ledger(round_id: int, db: Session) -> int:
    """
    清空回合帳本

    返回：
        刪除的筆數
    """
    deleted = db.query(Participant).filter(
        Participant.round_id == round_id
    ).delete(synchronize_session=False)
    db.flush()
    return deleted
