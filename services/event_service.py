"""
事件服務：寫入與查詢 EventLog

事件只用來給外部顯示層重建歷史，核心邏輯不依賴事件內容
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models import EventLog, EventType


def emit_event(db: Session, event_type: EventType, round_id: Optional[int], /, **data: Any) -> EventLog:
    """
    新增一筆事件（flush 但不 commit，跟著外層 transaction 一起生效或回滾）

    金額一律轉成字串，避免 JSON 超過 2^53 的整數失真
    """
    payload = dict(data)
    if "amount" in payload:
        payload["amount"] = str(payload["amount"])
    event = EventLog(event_type=event_type.value, round_id=round_id, data=payload)
    db.add(event)
    db.flush()
    return event


def list_events(db: Session, since_id: int = 0, limit: int = 100,
                event_type: Optional[EventType] = None) -> List[Dict[str, Any]]:
    """
    依 id 遞增取得 since_id 之後的事件（short polling 用）
    """
    query = db.query(EventLog).filter(EventLog.id > since_id)
    if event_type is not None:
        query = query.filter(EventLog.event_type == event_type.value)

    rows = query.order_by(EventLog.id).limit(limit).all()
    return [
        {
            "id": row.id,
            "event_type": row.event_type,
            "round_id": row.round_id,
            "data": row.data,
            "created_at": row.created_at,
        }
        for row in rows
    ]
