"""Reservation creation guarded by the ticket ledger."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from reservesync.config import Settings, get_settings
from reservesync.exceptions import MergeWriteError
from reservesync.schemas.ledger import ConsumptionReceipt
from reservesync.schemas.reservation import ReservationCreatedOut, ReservationRequest
from reservesync.services.batch_merger import BatchMerger
from reservesync.services.ledger import LedgerCoordinator
from reservesync.services.ledger_store import SqlLedgerStore
from reservesync.services.medical_force_client import MedicalForceClient
from reservesync.services.reservation_adapter import reservation_key, row_converter, to_sync_record
from reservesync.services.tabular_store import SqlTabularStore

logger = logging.getLogger(__name__)


class ReservationService:
    """
    Creates reservations in the scheduling API and charges tickets for them.

    Tickets are consumed before the remote call and given back if the call
    fails, so a failed booking never leaves a reduced balance.
    """

    def __init__(
        self,
        client: MedicalForceClient,
        ledger: LedgerCoordinator,
        merger: BatchMerger | None = None,
    ):
        self.client = client
        self.ledger = ledger
        self.merger = merger

    async def create_reservation_with_ledger(self, request: ReservationRequest) -> ReservationCreatedOut:
        """
        Create a reservation, consuming its ticket cost first.

        Raises:
            InsufficientBalanceError: before any remote call; nothing consumed
            RemoteCreateError: the remote create failed; tickets given back. A
                failed compensation is logged, never raised in its place
        """
        quote = await self.ledger.quote_cost(request)
        receipt: ConsumptionReceipt | None = None
        if quote is not None:
            receipt = await self.ledger.consume(
                quote.company_id,
                quote.resource_type,
                quote.amount,
                quote.period_key,
                memo=f"reservation for visitor {request.visitor_id}",
            )

        try:
            created = await self.client.create_reservation(request.to_api_payload())
        except Exception:
            if receipt is not None:
                logger.warning(f"Reservation create failed; compensating receipt {receipt.receipt_id}")
                try:
                    await self.ledger.compensate(receipt)
                except Exception as compensation_error:
                    logger.error(
                        f"Failed to compensate receipt {receipt.receipt_id}: {compensation_error}",
                        exc_info=True,
                    )
            # The remote-call error propagates whether or not compensation succeeded
            raise

        await self._mirror(created, request)

        return ReservationCreatedOut(
            reservation_id=reservation_key(created),
            ticket_consumed=receipt is not None,
            resource_type=quote.resource_type if quote is not None else None,
            reservation=created,
        )

    async def _mirror(self, created: dict, request: ReservationRequest) -> None:
        """Merge the new reservation into the tabular store; the next sync repairs failures."""
        if self.merger is None:
            return
        day = request.start_at.date()
        record = to_sync_record(created, day, day)
        if record is None:
            logger.warning("Created reservation has no id; not mirrored")
            return
        try:
            await self.merger.merge([record])
        except MergeWriteError as e:
            logger.error(f"Failed to mirror reservation {record.key}: {e}")


def build_reservation_service(
    db: AsyncSession,
    settings: Settings | None = None,
    client: MedicalForceClient | None = None,
) -> ReservationService:
    settings = settings or get_settings()
    return ReservationService(
        client or MedicalForceClient(settings),
        LedgerCoordinator(SqlLedgerStore(db), settings),
        BatchMerger(
            SqlTabularStore(db, settings.reservation_sheet_name),
            row_converter(settings.timezone),
        ),
    )
