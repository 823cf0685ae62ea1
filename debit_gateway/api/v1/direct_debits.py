"""Direct debit settlement endpoints"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from debit_gateway.api.v1.schemas import (
    AlertsResponse,
    FailedPaymentSchema,
    ProcessedPaymentSchema,
    ProcessRequest,
    ProcessResponse,
    SimulationItemSchema,
    SimulationResponse,
    UpcomingResponse,
    UpcomingSchema,
)
from debit_gateway.api.dependencies import get_direct_debit_service, get_request_id
from debit_gateway.domain.exceptions import SettlementLoadError
from debit_gateway.domain.money import format_currency
from debit_gateway.services.direct_debits import DirectDebitService

router = APIRouter()


@router.post("/direct-debits/process", response_model=ProcessResponse)
async def process_direct_debits(
    request_body: ProcessRequest,
    request: Request,
    service: DirectDebitService = Depends(get_direct_debit_service),
):
    """
    Settle every direct debit due today for a user.

    Flow:
    1. Load active direct debits and keep those due today
    2. Charge each one in turn against its card's ledger
    3. Advance each debit to its next payment date
    4. Queue success/failure notifications as background tasks
    5. Return per-debit outcomes with processed/failed totals
    """
    request_id = get_request_id(request)
    result = await service.process_due(request_body.user_id)

    if not result.success:
        logging.error(f"Settlement aborted: {result.error}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail=result.error)

    return ProcessResponse(
        user_id=request_body.user_id,
        processed_payments=[ProcessedPaymentSchema.from_domain(p) for p in result.processed],
        failed_payments=[FailedPaymentSchema.from_domain(f) for f in result.failed],
        total_processed=result.total_processed,
        total_failed=result.total_failed,
        message=result.message,
    )


@router.get("/direct-debits/simulation", response_model=SimulationResponse)
async def simulate_direct_debits(
    user_id: str = Query(..., min_length=1, description="User identifier"),
    service: DirectDebitService = Depends(get_direct_debit_service),
):
    """Preview today's settlement without charging anything"""
    result = await service.simulate_today(user_id)
    if not result.success:
        raise HTTPException(status_code=503, detail=result.error)

    return SimulationResponse(
        user_id=user_id,
        simulation=[SimulationItemSchema.from_domain(item) for item in result.items],
        message=result.message,
    )


@router.get("/direct-debits/upcoming", response_model=UpcomingResponse)
async def get_upcoming_direct_debits(
    user_id: str = Query(..., min_length=1, description="User identifier"),
    window_days: int = Query(30, ge=0, le=366, description="Lookahead in days"),
    service: DirectDebitService = Depends(get_direct_debit_service),
):
    """Active direct debits due in the next window_days, soonest first"""
    try:
        upcoming = await service.get_upcoming(user_id, window_days)
    except SettlementLoadError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return UpcomingResponse(
        user_id=user_id,
        window_days=window_days,
        upcoming=[UpcomingSchema.from_domain(u) for u in upcoming],
    )


@router.get("/direct-debits/alerts", response_model=AlertsResponse)
async def get_direct_debit_alerts(
    user_id: str = Query(..., min_length=1, description="User identifier"),
    service: DirectDebitService = Depends(get_direct_debit_service),
):
    """
    Dashboard alerts: debits due today, the ones among them that will fail
    for lack of funds, and debits due within the week.
    """
    try:
        alerts = await service.get_alerts(user_id)
    except SettlementLoadError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return AlertsResponse(
        user_id=user_id,
        due_today=[SimulationItemSchema.from_domain(item) for item in alerts.due_today],
        at_risk=[SimulationItemSchema.from_domain(item) for item in alerts.at_risk],
        upcoming_this_week=[UpcomingSchema.from_domain(u) for u in alerts.upcoming],
        total_active_amount=format_currency(alerts.total_active_amount),
    )
