"""
Wallet API Endpoints

查詢外部帳戶餘額與待領獎金（唯讀）
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from schemas import WalletResponse
from services.payout_service import get_wallet_balance, get_pending_payout

router = APIRouter(prefix="/api/wallets", tags=["wallets"])


@router.get("/{address}", response_model=WalletResponse)
def get_wallet(address: str, db: Session = Depends(get_db)):
    return WalletResponse(
        address=address,
        balance=get_wallet_balance(address, db),
        pending_payout=get_pending_payout(address, db)
    )
