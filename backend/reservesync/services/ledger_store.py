"""SQL access to ticket balances, usage history and plan lookups."""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reservesync.models import Company, CompanyVisitor, LedgerEntry, LedgerUsage, MenuTicketType, Plan

logger = logging.getLogger(__name__)


class SqlLedgerStore:
    """
    Ledger Store backed by the `ledger_entries` and `ledger_usages` tables.

    Every mutation is a single conditional UPDATE so a balance can not go
    negative and a usage can not be reversed twice, whatever the caller does.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_entry(
        self, company_id: str, period_key: str, resource_type: str
    ) -> LedgerEntry | None:
        return await self.db.get(
            LedgerEntry, (company_id, period_key, resource_type), populate_existing=True
        )

    async def list_entries(self, company_id: str, period_key: str) -> list[LedgerEntry]:
        result = await self.db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.company_id == company_id, LedgerEntry.period_key == period_key)
            .order_by(LedgerEntry.resource_type)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_usages(self, company_id: str, period_key: str) -> list[LedgerUsage]:
        """Usages of a company in a period, newest first, compensated ones included."""
        result = await self.db.execute(
            select(LedgerUsage)
            .where(LedgerUsage.company_id == company_id, LedgerUsage.period_key == period_key)
            .order_by(LedgerUsage.consumed_at.desc(), LedgerUsage.receipt_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def apply_consumption(self, usage: LedgerUsage) -> bool:
        """
        Increment `used` and record the usage in one transaction.

        Returns:
            False, with nothing written, if the balance no longer covers the amount
        """
        try:
            result = await self.db.execute(
                update(LedgerEntry)
                .where(
                    LedgerEntry.company_id == usage.company_id,
                    LedgerEntry.period_key == usage.period_key,
                    LedgerEntry.resource_type == usage.resource_type,
                    LedgerEntry.granted - LedgerEntry.used >= usage.amount,
                )
                .values(used=LedgerEntry.used + usage.amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                return False
            self.db.add(usage)
            await self.db.commit()
            return True
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def apply_compensation(self, receipt_id: str, compensated_at: datetime) -> LedgerUsage | None:
        """
        Mark a usage compensated and give its tickets back.

        Returns:
            The compensated usage, or None if it is unknown or already compensated
        """
        try:
            result = await self.db.execute(
                update(LedgerUsage)
                .where(LedgerUsage.receipt_id == receipt_id, LedgerUsage.compensated_at.is_(None))
                .values(compensated_at=compensated_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                return None

            usage = await self.db.get(LedgerUsage, receipt_id, populate_existing=True)
            await self.db.execute(
                update(LedgerEntry)
                .where(
                    LedgerEntry.company_id == usage.company_id,
                    LedgerEntry.period_key == usage.period_key,
                    LedgerEntry.resource_type == usage.resource_type,
                )
                .values(used=LedgerEntry.used - usage.amount)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            return usage
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def set_granted(
        self, company_id: str, period_key: str, allocations: dict[str, int]
    ) -> list[LedgerEntry]:
        """Set the granted amount of each ticket type, creating entries as needed."""
        entries = []
        try:
            for resource_type, granted in allocations.items():
                entry = await self.get_entry(company_id, period_key, resource_type)
                if entry is None:
                    entry = LedgerEntry(
                        company_id=company_id,
                        period_key=period_key,
                        resource_type=resource_type,
                        granted=granted,
                        used=0,
                    )
                    self.db.add(entry)
                else:
                    entry.granted = granted
                entries.append(entry)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.debug(f"Set granted tickets for {company_id}/{period_key}: {allocations}")
        for entry in entries:
            await self.db.refresh(entry)
        return entries

    async def company_for_visitor(self, visitor_id: str) -> str | None:
        result = await self.db.execute(
            select(CompanyVisitor.company_id).where(CompanyVisitor.visitor_id == visitor_id)
        )
        return result.scalar_one_or_none()

    async def ticket_type_for_menu(self, menu_id: str) -> str | None:
        result = await self.db.execute(
            select(MenuTicketType.ticket_type).where(MenuTicketType.menu_id == menu_id)
        )
        return result.scalar_one_or_none()

    async def companies_with_plans(self) -> list[tuple[Company, Plan]]:
        result = await self.db.execute(
            select(Company, Plan)
            .join(Plan, Company.plan_name == Plan.name)
            .order_by(Company.company_id)
        )
        return [(company, plan) for company, plan in result.all()]
