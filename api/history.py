"""
History API Endpoints - 短輪詢版

重點：
1. 已完成回合的得獎紀錄（不可變）
2. 事件紀錄，前端用 since_id 增量讀取
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

import logging

from database import get_db
from models import EventType
from schemas import RewardRecordResponse, RewardRecipientResponse, EventResponse
from services.history_service import get_reward_record, list_rewards, serialize_record
from services.event_service import list_events

router = APIRouter(prefix="/api/history", tags=["history"])
logger = logging.getLogger(__name__)


@router.get("/rewards", response_model=List[RewardRecordResponse])
def get_recent_rewards(
    limit: int = Query(20, ge=1, le=100),
    before_round_id: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db)
):
    """
    最近的得獎紀錄（新的在前）

    參數：
        limit: 筆數
        before_round_id: 分頁游標（上一頁最小的 round_id）
    """
    try:
        return list_rewards(db, limit=limit, before_round_id=before_round_id)

    except Exception as e:
        logger.error(f"Failed to list rewards: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/rewards/{round_id}", response_model=RewardRecipientResponse)
def get_reward_recipient(round_id: int, db: Session = Depends(get_db)):
    """
    取得某回合的得獎者

    當前回合或從未到達的回合：recipient 為 null（不是零地址）
    """
    record = get_reward_record(round_id, db)
    if not record:
        return RewardRecipientResponse(round_id=round_id, recipient=None)

    return RewardRecipientResponse(
        round_id=round_id,
        recipient=record.winner,
        record=RewardRecordResponse(**serialize_record(record))
    )


@router.get("/events", response_model=List[EventResponse])
def get_events(
    since_id: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    event_type: Optional[EventType] = Query(None),
    db: Session = Depends(get_db)
):
    """
    取得 since_id 之後的事件

    事件類型：
        NEW_ROUND_STARTED / PARTICIPANT_JOINED / REWARD_DISTRIBUTED / REWARD_WITHDRAWN
    """
    try:
        return list_events(db, since_id=since_id, limit=limit, event_type=event_type)

    except Exception as e:
        logger.error(f"Failed to list events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
