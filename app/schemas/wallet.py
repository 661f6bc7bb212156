"""Request and response schemas for wallet endpoints."""
from datetime import datetime
from typing import List, Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from app.models.wallet import MAX_COINS


class CamelModel(BaseModel):
    """Serializes to camelCase (userId, totalEarned) while accepting snake_case too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class WalletRecord(CamelModel):
    """Plain snapshot of a wallet row."""
    id: int
    user_id: str
    balance: int
    total_earned: int
    created_at: datetime
    updated_at: datetime


class TransactionRecord(CamelModel):
    """Plain snapshot of a transaction row."""
    id: int
    user_id: str
    amount: int
    type: Literal["earn", "spend"]
    action: str
    description: str
    created_at: datetime


class CoinRequest(BaseModel):
    """Request body for earn and spend."""
    amount: int = Field(..., gt=0, le=MAX_COINS, description="Coins to add or remove")
    action: str = Field(..., min_length=1, max_length=100, description="Symbolic action label, e.g. FIRST_BOOKING")
    description: str = Field(..., max_length=255, description="Human-readable reason")


class WalletUpdateResponse(BaseModel):
    """Response for earn, spend and reward."""
    wallet: WalletRecord
    message: str


class LevelResponse(CamelModel):
    user_id: str
    level: int
    tier: str
    total_earned: int
    next_level_at: int


class RewardInfo(BaseModel):
    action: str
    amount: int
    description: str


class RewardCatalogResponse(BaseModel):
    rewards: List[RewardInfo]
