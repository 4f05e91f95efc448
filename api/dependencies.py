"""
FastAPI dependencies

RewardPool 實例在 process 內只建立一次（跟 settings 一樣用 lru_cache），
測試時用 app.dependency_overrides 換掉。
"""
from functools import lru_cache

from fastapi import HTTPException

from core.exceptions import RewardPoolException
from core.pool_manager import RewardPool
from database import get_settings


@lru_cache()
def get_pool() -> RewardPool:
    return RewardPool.from_settings(get_settings())


def error_detail(exc: RewardPoolException) -> dict:
    return {"error": exc.code, "message": str(exc)}


def http_error(status_code: int, exc: RewardPoolException) -> HTTPException:
    return HTTPException(status_code=status_code, detail=error_detail(exc))
