"""Pydantic schemas for ticket ledger operations."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class CostQuote(BaseModel):
    """Tickets a reservation will consume, and whose ledger they come from."""

    company_id: str
    period_key: str
    resource_type: str
    amount: int


class ConsumptionReceipt(BaseModel):
    """
    Proof of one successful consumption.

    It is the only input needed to reverse the consumption and is meant to be
    used once, either discarded on success or passed to `compensate`.
    """

    model_config = ConfigDict(frozen=True)

    receipt_id: str
    company_id: str
    period_key: str
    resource_type: str
    amount: int
    consumed_at: datetime


class LedgerBalanceOut(BaseModel):
    """Ticket balance for one ticket type."""

    model_config = ConfigDict(from_attributes=True)

    resource_type: str
    granted: int
    used: int
    balance: int


class CompanyBalancesOut(BaseModel):
    """All ticket balances of a company for one period."""

    company_id: str
    period_key: str
    balances: list[LedgerBalanceOut]


class LedgerUsageOut(BaseModel):
    """One recorded ticket consumption."""

    model_config = ConfigDict(from_attributes=True)

    receipt_id: str
    resource_type: str
    amount: int
    consumed_at: datetime
    compensated_at: datetime | None = None
    memo: str | None = None


class CompanyUsageHistoryOut(BaseModel):
    """
    Ticket usage history of a company for one period.

    `last_used_at` holds the latest uncompensated consumption per ticket type.
    """

    company_id: str
    period_key: str
    usages: list[LedgerUsageOut]
    last_used_at: dict[str, datetime]
