"""
回合狀態機

狀態：
    OPEN ──(now >= round_start + round_duration)──> AWAITING_DISTRIBUTION
    AWAITING_DISTRIBUTION ──(distribute)──> 下一回合 OPEN（round_id + 1）

「關閉」是由時間推導出來的，不存在資料庫裡。
round_start 為 None 代表尚未開始計時，這時回合永遠是 OPEN。

回合開始的兩種策略：
- first_join：第一位參與者加入時才開始計時（預設）
- creation：回合建立時就開始計時
"""
from typing import Optional

from models import PoolState, RoundPhase

FIRST_JOIN = "first_join"
CREATION = "creation"
ROUND_START_POLICIES = (FIRST_JOIN, CREATION)


def ends_at(state: PoolState) -> Optional[int]:
    if state.round_start is None:
        return None
    return state.round_start + state.round_duration


def is_open(state: PoolState, now: int) -> bool:
    """
    回合是否開放加入

    純函式：只看 now、round_start、round_duration，沒有副作用
    """
    end = ends_at(state)
    return end is None or now < end


def get_phase(state: PoolState, now: int) -> RoundPhase:
    if is_open(state, now):
        return RoundPhase.OPEN
    return RoundPhase.AWAITING_DISTRIBUTION


def is_eligible_for_distribution(state: PoolState, participant_count: int, now: int) -> bool:
    return not is_open(state, now) and participant_count > 0


def time_remaining(state: PoolState, now: int) -> Optional[int]:
    """剩餘秒數；尚未計時時回傳 None，已關閉回傳 0"""
    end = ends_at(state)
    if end is None:
        return None
    return max(0, end - now)


def initial_round_start(policy: str, now: int) -> Optional[int]:
    if policy not in ROUND_START_POLICIES:
        raise ValueError(f"Unknown round start policy: {policy}")
    return now if policy == CREATION else None


def start_timer(state: PoolState, now: int) -> bool:
    """
    第一位參與者加入時開始計時

    返回：
        True 如果這次呼叫開始了計時，False 如果早已在計時
    """
    if state.round_start is not None:
        return False
    state.round_start = now
    return True


def advance_round(state: PoolState, now: int, policy: str) -> int:
    """
    結束目前回合，推進到下一回合

    效果：
    - round_id + 1（永不重複使用）
    - pool_balance 歸零
    - round_start 依策略重置

    返回：
        新的 round_id
    """
    state.round_id = state.round_id + 1
    state.pool_balance = 0
    state.round_start = initial_round_start(policy, now)
    return state.round_id
