"""Coin wallet: balances plus an append-only transaction log.

Every mutation runs inside one database transaction that writes the wallet row
and its transaction record together. Balance changes are single conditional
UPDATE statements, so concurrent spends for the same user are serialized by
the database: the second one sees the already-decremented balance and fails
its `balance >= amount` guard instead of overdrawing.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.errors import InsufficientBalance, ValidationError
from app.core.rewards import get_reward, level_for, next_level_at, tier_for
from app.database import transaction
from app.models.wallet import MAX_COINS, Transaction, Wallet
from app.schemas.wallet import LevelResponse, TransactionRecord, WalletRecord

logger = logging.getLogger(__name__)

USER_ID_MAX_CHARS = 255
ACTION_MAX_CHARS = 100
DESCRIPTION_MAX_CHARS = 255

# One retry covers losing the unique-key race when two first earns create the same wallet
CREATE_RACE_RETRIES = 1


def _validate_user_id(user_id: str) -> str:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("User ID is required")
    if len(user_id) > USER_ID_MAX_CHARS:
        raise ValidationError(f"User ID must be at most {USER_ID_MAX_CHARS} characters")
    return user_id


def _validate_amount(amount: int) -> int:
    # bool is an int subclass; True is not a coin amount
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Amount must be a whole number of coins")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    if amount > MAX_COINS:
        raise ValidationError(f"Amount must be at most {MAX_COINS} coins")
    return amount


def _validate_labels(action: str, description: str) -> Tuple[str, str]:
    if not isinstance(action, str) or not action.strip():
        raise ValidationError("Action is required")
    if len(action) > ACTION_MAX_CHARS:
        raise ValidationError(f"Action must be at most {ACTION_MAX_CHARS} characters")
    description = description if isinstance(description, str) else ""
    if len(description) > DESCRIPTION_MAX_CHARS:
        raise ValidationError(f"Description must be at most {DESCRIPTION_MAX_CHARS} characters")
    return action.strip(), description


def _load_wallet(db: Session, user_id: str) -> Optional[Wallet]:
    return (
        db.query(Wallet)
        .filter(Wallet.user_id == user_id)
        .populate_existing()
        .first()
    )


def _append_transaction(
    db: Session, user_id: str, amount: int, txn_type: str, action: str, description: str
) -> Transaction:
    txn = Transaction(
        user_id=user_id,
        amount=amount,
        type=txn_type,
        action=action,
        description=description,
    )
    db.add(txn)
    db.flush()
    return txn


def earn_message(amount: int, description: str) -> str:
    return f"You earned {amount} coins for {description}!"


def spend_message(amount: int, description: str) -> str:
    return f"You spent {amount} coins on {description}"


def get_balance(db: Session, user_id: str) -> WalletRecord:
    """Return the user's wallet, creating an empty one on first access."""
    user_id = _validate_user_id(user_id)
    for attempt in range(CREATE_RACE_RETRIES + 1):
        try:
            with transaction(db):
                wallet = _load_wallet(db, user_id)
                if wallet is None:
                    wallet = Wallet(user_id=user_id, balance=0, total_earned=0)
                    db.add(wallet)
                    db.flush()
                    logger.info(f"Created wallet for user {user_id}")
                return WalletRecord.model_validate(wallet)
        except IntegrityError:
            if attempt >= CREATE_RACE_RETRIES:
                raise
            logger.info(f"Wallet for {user_id} created concurrently, reloading")


def earn(
    db: Session, user_id: str, amount: int, action: str, description: str
) -> Tuple[WalletRecord, TransactionRecord]:
    """
    Credit coins to a wallet and record an `earn` transaction.

    Creates the wallet seeded with `amount` when the user has none. Balance,
    total earned and the transaction row commit together or not at all.

    Raises:
        ValidationError: amount not positive or above MAX_COINS, the credit would
            push total earned past MAX_COINS, or user id / labels malformed
        StoreUnavailable: database unreachable (nothing was written)
    """
    user_id = _validate_user_id(user_id)
    amount = _validate_amount(amount)
    action, description = _validate_labels(action, description)

    for attempt in range(CREATE_RACE_RETRIES + 1):
        try:
            with transaction(db):
                result = db.execute(
                    update(Wallet)
                    # total_earned >= balance, so this cap also bounds the balance
                    .where(Wallet.user_id == user_id, Wallet.total_earned <= MAX_COINS - amount)
                    .values(
                        balance=Wallet.balance + amount,
                        total_earned=Wallet.total_earned + amount,
                        updated_at=datetime.utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    if _load_wallet(db, user_id) is not None:
                        raise ValidationError(f"Wallet cannot hold more than {MAX_COINS} coins")
                    db.add(Wallet(user_id=user_id, balance=amount, total_earned=amount))
                    db.flush()
                txn = _append_transaction(db, user_id, amount, "earn", action, description)
                wallet = _load_wallet(db, user_id)
                records = (WalletRecord.model_validate(wallet), TransactionRecord.model_validate(txn))
            break
        except IntegrityError:
            if attempt >= CREATE_RACE_RETRIES:
                raise
            logger.info(f"Wallet for {user_id} created concurrently, retrying earn")

    logger.info(f"User {user_id} earned {amount} coins ({action}); balance={records[0].balance}")
    return records


def spend(
    db: Session, user_id: str, amount: int, action: str, description: str
) -> Tuple[WalletRecord, TransactionRecord]:
    """
    Debit coins from a wallet and record a `spend` transaction.

    Raises:
        ValidationError: amount not positive or above MAX_COINS, or user id / labels malformed
        InsufficientBalance: no wallet, or balance below `amount` (nothing changes)
        StoreUnavailable: database unreachable (nothing was written)
    """
    user_id = _validate_user_id(user_id)
    amount = _validate_amount(amount)
    action, description = _validate_labels(action, description)

    with transaction(db):
        # Check and debit in one statement; the row lock taken by the UPDATE
        # serializes concurrent spends for this user.
        result = db.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(f"Rejected spend of {amount} coins for user {user_id}: insufficient balance")
            raise InsufficientBalance()
        txn = _append_transaction(db, user_id, amount, "spend", action, description)
        wallet = _load_wallet(db, user_id)
        records = (WalletRecord.model_validate(wallet), TransactionRecord.model_validate(txn))

    logger.info(f"User {user_id} spent {amount} coins ({action}); balance={records[0].balance}")
    return records


def list_transactions(db: Session, user_id: str, limit: int = 50) -> List[TransactionRecord]:
    """Most recent transactions first, at most `limit` of them."""
    user_id = _validate_user_id(user_id)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValidationError("Limit must be a positive integer")

    with transaction(db):
        rows = (
            db.query(Transaction)
            .filter(Transaction.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .limit(limit)
            .all()
        )
        return [TransactionRecord.model_validate(row) for row in rows]


def reward(db: Session, user_id: str, action: str) -> Tuple[WalletRecord, TransactionRecord]:
    """Earn the catalogued amount for a gamification action (e.g. FIRST_BOOKING)."""
    entry = get_reward(action)
    if entry is None:
        raise ValidationError(f"Unknown reward action: {action}")
    return earn(db, user_id, entry.amount, action.strip().upper(), entry.description)


def get_level(db: Session, user_id: str) -> LevelResponse:
    wallet = get_balance(db, user_id)
    level = level_for(wallet.total_earned)
    return LevelResponse(
        user_id=wallet.user_id,
        level=level,
        tier=tier_for(level),
        total_earned=wallet.total_earned,
        next_level_at=next_level_at(level),
    )
