"""API routes for reservation creation and ticket balances."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from reservesync.database import get_db
from reservesync.exceptions import InsufficientBalanceError, RemoteCreateError
from reservesync.schemas.ledger import (
    CompanyBalancesOut,
    CompanyUsageHistoryOut,
    LedgerBalanceOut,
    LedgerUsageOut,
)
from reservesync.schemas.reservation import ReservationCreatedOut, ReservationRequest
from reservesync.services.ledger import LedgerCoordinator
from reservesync.services.ledger_store import SqlLedgerStore
from reservesync.services.medical_force_client import MedicalForceClient, get_medical_force_client
from reservesync.services.reservations import build_reservation_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["reservations"])


@router.post(
    "/reservations",
    response_model=ReservationCreatedOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    request: ReservationRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    client: Annotated[MedicalForceClient, Depends(get_medical_force_client)],
) -> ReservationCreatedOut:
    """
    Create a reservation and consume its ticket cost.

    Fails with 409 before anything is booked if the company has too few
    tickets, and with 502 if the scheduling API rejects the booking (the
    tickets are given back).
    """
    service = build_reservation_service(db, client=client)
    try:
        return await service.create_reservation_with_ledger(request)
    except InsufficientBalanceError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except RemoteCreateError as e:
        logger.warning(f"Reservation for visitor {request.visitor_id} not created: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e


@router.get("/ledger/{company_id}/{period_key}", response_model=CompanyBalancesOut)
async def get_company_balances(
    db: Annotated[AsyncSession, Depends(get_db)],
    company_id: str,
    period_key: Annotated[str, Path(pattern=r"^\d{4}-\d{2}$", description="Month (YYYY-MM)")],
) -> CompanyBalancesOut:
    """Ticket balances of a company for one month."""
    coordinator = LedgerCoordinator(SqlLedgerStore(db))
    entries = await coordinator.get_balances(company_id, period_key)

    return CompanyBalancesOut(
        company_id=company_id,
        period_key=period_key,
        balances=[LedgerBalanceOut.model_validate(entry) for entry in entries],
    )


@router.get("/ledger/{company_id}/{period_key}/usages", response_model=CompanyUsageHistoryOut)
async def get_company_usage_history(
    db: Annotated[AsyncSession, Depends(get_db)],
    company_id: str,
    period_key: Annotated[str, Path(pattern=r"^\d{4}-\d{2}$", description="Month (YYYY-MM)")],
) -> CompanyUsageHistoryOut:
    """Ticket consumptions of a company for one month, including compensated ones."""
    coordinator = LedgerCoordinator(SqlLedgerStore(db))
    usages, last_used_at = await coordinator.get_history(company_id, period_key)

    return CompanyUsageHistoryOut(
        company_id=company_id,
        period_key=period_key,
        usages=[LedgerUsageOut.model_validate(usage) for usage in usages],
        last_used_at=last_used_at,
    )
