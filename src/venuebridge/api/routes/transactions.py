"""Ledger read endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, field_serializer

router = APIRouter()


class TransactionResponse(BaseModel):
    """Public view of a ledger row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    direction: str
    status: str
    exchange_id: Optional[str] = None
    from_currency: str
    to_currency: str
    from_network: str
    to_network: str
    from_amount: Decimal
    to_amount: Optional[Decimal] = None
    payin_address: Optional[str] = None
    payout_address: Optional[str] = None
    user_address: str
    funding_hash: Optional[str] = None
    venue_tx_id: Optional[str] = None
    payout_hash: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_serializer("from_amount", "to_amount")
    def serialize_amount(self, value: Optional[Decimal]) -> Optional[str]:
        if value is None:
            return None
        return format(value.normalize(), "f")


@router.get("/transactions/{tx_id}", response_model=TransactionResponse)
async def get_transaction(tx_id: str, request: Request):
    """Get one ledger row."""
    tx = await request.app.state.services.deposits.get_transaction(tx_id)
    if tx is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return TransactionResponse.model_validate(tx)


@router.get("/wallets/{wallet_address}/transactions", response_model=list[TransactionResponse])
async def get_wallet_transactions(
    wallet_address: str,
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    """Get a wallet's transaction history, newest first."""
    rows = await request.app.state.services.deposits.get_wallet_transactions(
        wallet_address, limit=limit, offset=offset
    )
    return [TransactionResponse.model_validate(tx) for tx in rows]
