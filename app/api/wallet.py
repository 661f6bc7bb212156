"""Wallet endpoints: balance, earn, spend, history, rewards and levels."""
import logging
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.rewards import COIN_REWARDS
from app.database import get_db
from app.schemas.wallet import (
    CoinRequest,
    LevelResponse,
    RewardCatalogResponse,
    RewardInfo,
    TransactionRecord,
    WalletRecord,
    WalletUpdateResponse,
)
from app.services import wallet as wallet_service

logger = logging.getLogger(__name__)

router = APIRouter()
rewards_router = APIRouter()


@router.get("/{user_id}", response_model=WalletRecord)
def get_wallet(user_id: str, db: Session = Depends(get_db)):
    """Get the user's wallet, creating an empty one on first access."""
    return wallet_service.get_balance(db, user_id)


@router.post("/{user_id}/earn", response_model=WalletUpdateResponse)
def earn_coins(user_id: str, request: CoinRequest, db: Session = Depends(get_db)):
    """Add coins to the wallet and record an earn transaction."""
    wallet, _ = wallet_service.earn(db, user_id, request.amount, request.action, request.description)
    return WalletUpdateResponse(
        wallet=wallet,
        message=wallet_service.earn_message(request.amount, request.description),
    )


@router.post("/{user_id}/spend", response_model=WalletUpdateResponse)
def spend_coins(user_id: str, request: CoinRequest, db: Session = Depends(get_db)):
    """
    Spend coins from the wallet.

    Returns 400 {"message": "Insufficient balance"} when the wallet is missing
    or holds fewer than `amount` coins.
    """
    wallet, _ = wallet_service.spend(db, user_id, request.amount, request.action, request.description)
    return WalletUpdateResponse(
        wallet=wallet,
        message=wallet_service.spend_message(request.amount, request.description),
    )


@router.get("/{user_id}/transactions", response_model=List[TransactionRecord])
def get_transactions(
    user_id: str,
    limit: int = Query(settings.wallet_history_limit, ge=1, le=settings.wallet_history_limit),
    db: Session = Depends(get_db),
):
    """Transaction history, newest first."""
    return wallet_service.list_transactions(db, user_id, limit)


@router.get("/{user_id}/level", response_model=LevelResponse)
def get_level(user_id: str, db: Session = Depends(get_db)):
    """Parker level and tier derived from total coins earned."""
    return wallet_service.get_level(db, user_id)


@router.post("/{user_id}/rewards/{action}", response_model=WalletUpdateResponse)
def claim_reward(user_id: str, action: str, db: Session = Depends(get_db)):
    """Earn the catalogued coins for a gamification action."""
    wallet, txn = wallet_service.reward(db, user_id, action)
    return WalletUpdateResponse(
        wallet=wallet,
        message=wallet_service.earn_message(txn.amount, txn.description),
    )


@rewards_router.get("", response_model=RewardCatalogResponse)
def list_rewards():
    """Catalog of actions that earn coins."""
    return RewardCatalogResponse(
        rewards=[
            RewardInfo(action=action, amount=entry.amount, description=entry.description)
            for action, entry in COIN_REWARDS.items()
        ]
    )
