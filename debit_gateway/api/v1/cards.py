"""GET /v1/cards/{card_id}/balance - Ledger-derived card balance"""

from fastapi import APIRouter, Depends, HTTPException, Query

from debit_gateway.api.v1.schemas import BalanceResponse
from debit_gateway.api.dependencies import get_direct_debit_service
from debit_gateway.domain.exceptions import SettlementLoadError
from debit_gateway.services.direct_debits import DirectDebitService

router = APIRouter()


@router.get("/cards/{card_id}/balance", response_model=BalanceResponse)
async def get_card_balance(
    card_id: str,
    user_id: str = Query(..., min_length=1, description="User identifier"),
    service: DirectDebitService = Depends(get_direct_debit_service),
):
    """
    Current balance folded from the card's ledger.

    Credit cards also report their limit and the credit still available.
    """
    try:
        found = await service.get_balance(user_id, card_id)
    except SettlementLoadError as e:
        raise HTTPException(status_code=503, detail=str(e))

    if found is None:
        raise HTTPException(status_code=404, detail="Card not found")

    account, balance = found
    if balance.error:
        raise HTTPException(status_code=503, detail="Card transactions unavailable")

    return BalanceResponse.from_domain(account, balance)
