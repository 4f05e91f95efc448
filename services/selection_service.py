"""
得獎者選擇服務

純計算邏輯：index = seed mod 參與人數
"""
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class Selection:
    winner: str
    winner_index: int
    participant_count: int
    seed: int


def select_winner_index(seed: int, participant_count: int) -> int:
    """
    計算得獎者在參與者列表中的位置

    範例：
        select_winner_index(10, 3) -> 1
        select_winner_index(2, 3)  -> 2

    異常：
        ValueError: participant_count <= 0（呼叫者應先檢查 NoParticipants）
    """
    if participant_count <= 0:
        raise ValueError("Cannot select a winner from an empty ledger")
    return seed % participant_count


def select_winner(seed: int, participants: Sequence[str]) -> Selection:
    index = select_winner_index(seed, len(participants))
    return Selection(
        winner=participants[index],
        winner_index=index,
        participant_count=len(participants),
        seed=seed
    )
