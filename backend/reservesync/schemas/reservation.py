"""Pydantic schemas for reservation creation."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class ReservationRequest(BaseModel):
    """
    Reservation to create in the scheduling API.

    Unknown fields are kept and forwarded to the API unchanged.
    """

    model_config = ConfigDict(extra="allow")

    visitor_id: str
    start_at: datetime
    end_at: datetime | None = None
    menu_id: str | None = None
    menu_name: str | None = None
    company_id: str | None = None  # Overrides the visitor's company association
    clinic_id: str | None = None
    memo: str | None = None

    def to_api_payload(self) -> dict[str, Any]:
        """Body for the create-reservation call."""
        payload = self.model_dump(mode="json", exclude_none=True)
        payload.pop("company_id", None)
        return payload


class ReservationCreatedOut(BaseModel):
    """Response for a created reservation."""

    reservation_id: str | None
    ticket_consumed: bool
    resource_type: str | None = None
    reservation: dict[str, Any]
