"""Ticket ledger coordination: cost quotes, consumption and compensation."""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from reservesync.config import Settings, get_settings
from reservesync.exceptions import InsufficientBalanceError, LedgerEntryNotFoundError
from reservesync.models import LedgerEntry, LedgerUsage
from reservesync.schemas.ledger import ConsumptionReceipt, CostQuote
from reservesync.schemas.reservation import ReservationRequest
from reservesync.services.ledger_store import SqlLedgerStore

logger = logging.getLogger(__name__)


class LedgerCoordinator:
    """
    Prices reservations in tickets and moves tickets in and out of the ledger.

    A consumption returns a `ConsumptionReceipt`. The receipt is the only
    thing needed to reverse it, and the store accepts each receipt for
    compensation once.
    """

    def __init__(
        self,
        store: SqlLedgerStore,
        settings: Settings | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.tz = ZoneInfo(settings.timezone)
        self.cost_per_reservation = settings.ticket_cost_per_reservation
        self.low_balance_threshold = settings.ticket_low_balance_threshold
        self._now = now or (lambda: datetime.now(self.tz))

    def current_period(self) -> str:
        """Period key (YYYY-MM) of the current month in the clinic's timezone."""
        return self._now().astimezone(self.tz).strftime("%Y-%m")

    async def quote_cost(self, request: ReservationRequest) -> CostQuote | None:
        """
        Resolve the tickets a reservation costs.

        Returns:
            None when the reservation is free: no company pays for the visitor,
            or the menu is not tied to a ticket type
        """
        company_id = request.company_id or await self.store.company_for_visitor(request.visitor_id)
        if not company_id:
            logger.info(f"No company for visitor {request.visitor_id}; no tickets charged")
            return None

        if not request.menu_id:
            return None

        resource_type = await self.store.ticket_type_for_menu(request.menu_id)
        if not resource_type:
            logger.info(f"Menu {request.menu_id} has no ticket type; no tickets charged")
            return None

        return CostQuote(
            company_id=company_id,
            period_key=self.current_period(),
            resource_type=resource_type,
            amount=self.cost_per_reservation,
        )

    async def consume(
        self,
        company_id: str,
        resource_type: str,
        amount: int,
        period_key: str,
        memo: str | None = None,
    ) -> ConsumptionReceipt:
        """
        Take `amount` tickets from a company's balance.

        Raises:
            ValueError: if amount is not positive
            InsufficientBalanceError: if the balance is below `amount`; nothing
                is written
            LedgerEntryNotFoundError: if the company has no entry for the
                period and ticket type
        """
        if amount <= 0:
            raise ValueError(f"Ticket amount must be positive, got {amount}")

        entry = await self.store.get_entry(company_id, period_key, resource_type)
        if entry is None:
            raise LedgerEntryNotFoundError(company_id, period_key, resource_type, amount)
        if entry.balance < amount:
            raise InsufficientBalanceError(company_id, period_key, resource_type, entry.balance, amount)

        consumed_at = self._now()
        usage = LedgerUsage(
            receipt_id=str(uuid.uuid4()),
            company_id=company_id,
            period_key=period_key,
            resource_type=resource_type,
            amount=amount,
            consumed_at=consumed_at,
            memo=memo,
        )
        if not await self.store.apply_consumption(usage):
            # Balance changed between the read and the update
            entry = await self.store.get_entry(company_id, period_key, resource_type)
            balance = entry.balance if entry is not None else 0
            raise InsufficientBalanceError(company_id, period_key, resource_type, balance, amount)

        remaining = entry.granted - entry.used - amount
        logger.info(
            f"Consumed {amount} {resource_type} for {company_id}/{period_key} "
            f"(receipt {usage.receipt_id}, remaining {remaining})"
        )
        if remaining <= self.low_balance_threshold:
            logger.warning(
                f"Low {resource_type} balance for company {company_id} in {period_key}: {remaining}"
            )

        return ConsumptionReceipt(
            receipt_id=usage.receipt_id,
            company_id=company_id,
            period_key=period_key,
            resource_type=resource_type,
            amount=amount,
            consumed_at=consumed_at,
        )

    async def compensate(self, receipt: ConsumptionReceipt) -> bool:
        """
        Give back the tickets of a consumption.

        Returns:
            True if the tickets were restored, False if this receipt was
            already compensated (nothing is changed)
        """
        usage = await self.store.apply_compensation(receipt.receipt_id, self._now())
        if usage is None:
            logger.warning(f"Receipt {receipt.receipt_id} already compensated or unknown; ignored")
            return False

        logger.info(
            f"Compensated {receipt.amount} {receipt.resource_type} for "
            f"{receipt.company_id}/{receipt.period_key} (receipt {receipt.receipt_id})"
        )
        return True

    async def grant(
        self, company_id: str, period_key: str, allocations: dict[str, int]
    ) -> list[LedgerEntry]:
        """Set a company's granted tickets for a period."""
        entries = await self.store.set_granted(company_id, period_key, allocations)
        logger.info(f"Granted {allocations} to {company_id} for {period_key}")
        return entries

    async def grant_monthly(self, period_key: str | None = None) -> int:
        """
        Grant every company with a plan its plan allocation.

        Returns:
            Number of companies granted
        """
        period_key = period_key or self.current_period()
        granted = 0
        for company, plan in await self.store.companies_with_plans():
            allocations = {
                resource_type: int(amount) for resource_type, amount in (plan.allocations or {}).items()
            }
            if not allocations:
                continue
            await self.grant(company.company_id, period_key, allocations)
            granted += 1

        logger.info(f"Monthly grant for {period_key}: {granted} companies")
        return granted

    async def get_balances(self, company_id: str, period_key: str) -> list[LedgerEntry]:
        return await self.store.list_entries(company_id, period_key)

    async def get_history(
        self, company_id: str, period_key: str
    ) -> tuple[list[LedgerUsage], dict[str, datetime]]:
        """
        Usage history of a company for a period.

        Returns:
            (usages newest first, latest uncompensated consumption per ticket type)
        """
        usages = await self.store.list_usages(company_id, period_key)
        last_used_at: dict[str, datetime] = {}
        for usage in usages:
            if usage.compensated_at is not None:
                continue
            current = last_used_at.get(usage.resource_type)
            if current is None or usage.consumed_at > current:
                last_used_at[usage.resource_type] = usage.consumed_at
        return usages, last_used_at
