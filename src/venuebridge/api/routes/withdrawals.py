"""Withdrawal endpoints."""

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field

from venuebridge.api.routes.transactions import TransactionResponse

router = APIRouter()


class WithdrawalRequest(BaseModel):
    """Request to withdraw SOL from the venue and convert it back to ADA."""

    wallet_address: str = Field(..., min_length=10, max_length=255, description="User wallet address")
    amount: int = Field(..., gt=0, description="Amount in lamports")


@router.post("/withdrawals", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_withdrawal(payload: WithdrawalRequest, request: Request):
    """Submit a venue withdrawal; the reverse exchange follows once it completes."""
    tx = await request.app.state.services.withdrawals.initiate_withdrawal(
        payload.wallet_address, payload.amount
    )
    return TransactionResponse.model_validate(tx)
