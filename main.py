from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

import models  # noqa: F401  註冊所有 table 到 Base.metadata
from database import Base, engine, SessionLocal, settings
from api import pool, history, wallets
from api.dependencies import get_pool

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立資料庫表並初始化第 1 回合（已存在則不動）
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        get_pool().init_pool(db)
    finally:
        db.close()
    yield


app = FastAPI(
    title="Reward Pool API",
    description="Round-based pooled-contribution lottery backend",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(pool.router)
app.include_router(history.router)
app.include_router(wallets.router)


@app.get("/")
def root():
    return {"message": "Reward Pool API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
