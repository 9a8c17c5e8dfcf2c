"""Lookup models used to price reservations and grant monthly tickets."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from reservesync.database import Base


class Plan(Base):
    """Contract plan with its monthly ticket allocation per ticket type."""

    __tablename__ = "plans"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    # e.g. {"幹細胞": 2, "施術": 5, "点滴": 3}
    allocations: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Plan {self.name}>"


class Company(Base):
    """Corporate customer holding a ticket plan."""

    __tablename__ = "companies"

    company_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    plan_name: Mapped[str | None] = mapped_column(String(100))

    def __repr__(self) -> str:
        return f"<Company {self.company_id}: {self.name}>"


class CompanyVisitor(Base):
    """Association of a visitor (patient) with the company paying for them."""

    __tablename__ = "company_visitors"

    visitor_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    company_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    member_type: Mapped[str | None] = mapped_column(String(50))


class MenuTicketType(Base):
    """Ticket type consumed by a treatment menu; menus without a row are free."""

    __tablename__ = "menu_ticket_types"

    menu_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    ticket_type: Mapped[str] = mapped_column(String(50), nullable=False)
