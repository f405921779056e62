"""Deposit endpoints."""

from decimal import Decimal, InvalidOperation
from typing import Optional

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, Field, field_validator

from venuebridge.api.routes.transactions import TransactionResponse

router = APIRouter()


class DepositRequest(BaseModel):
    """Request to convert ADA and deposit the proceeds into the venue."""

    wallet_address: str = Field(..., min_length=10, max_length=255, description="User wallet address")
    amount: str = Field(..., description="ADA amount as a decimal string")
    payout_address: Optional[str] = Field(None, max_length=255, description="SOL payout override")
    refund_address: Optional[str] = Field(None, max_length=255, description="ADA refund override")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: str) -> str:
        """Validate amount is a positive decimal number."""
        try:
            amount = Decimal(v)
        except InvalidOperation:
            raise ValueError(f"Invalid amount format: {v}")
        if not amount.is_finite() or amount <= 0:
            raise ValueError("Amount must be positive")
        return str(amount)


class MinAmountResponse(BaseModel):
    from_currency: str
    to_currency: str
    min_amount: str


@router.post("/deposits", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_deposit(payload: DepositRequest, request: Request):
    """Open and fund an ADA -> SOL exchange order for a wallet."""
    tx = await request.app.state.services.deposits.create_deposit(
        payload.wallet_address,
        payload.amount,
        payout_address=payload.payout_address,
        refund_address=payload.refund_address,
    )
    return TransactionResponse.model_validate(tx)


@router.get("/deposits/min-amount", response_model=MinAmountResponse)
async def get_min_amount(
    request: Request,
    from_currency: Optional[str] = Query(default=None),
    to_currency: Optional[str] = Query(default=None),
    from_network: Optional[str] = Query(default=None),
    to_network: Optional[str] = Query(default=None),
    flow: Optional[str] = Query(default=None),
):
    """Minimum ADA pay-in accepted by the exchange gateway."""
    services = request.app.state.services
    min_amount = await services.deposits.get_min_amount(
        from_currency, to_currency, from_network, to_network, flow
    )
    return MinAmountResponse(
        from_currency=from_currency or services.settings.deposit_from_currency,
        to_currency=to_currency or services.settings.deposit_to_currency,
        min_amount=str(min_amount),
    )
