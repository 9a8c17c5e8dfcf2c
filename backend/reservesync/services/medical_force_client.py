"""Client for the Medical Force scheduling API."""

import logging
from datetime import date
from typing import Any

import httpx

from reservesync.config import Settings, get_settings
from reservesync.exceptions import FatalFetchError, RemoteCreateError, TransientFetchError
from reservesync.schemas.sync import PageResult
from reservesync.services.reservation_adapter import to_sync_record

logger = logging.getLogger(__name__)

RESERVATIONS_ENDPOINT = "/developer/reservations"


class MedicalForceClient:
    """
    Client for the Medical Force developer API.

    Features:
    - One page per call, no retries
    - Errors classified as transient (network, 429, 5xx) or fatal (other 4xx)
    - Both reservation list shapes normalized into `PageResult`
    """

    def __init__(
        self,
        settings: Settings | None = None,
        base_url: str | None = None,
        api_token: str | None = None,
        clinic_id: str | None = None,
        timeout: float | None = None,
    ):
        settings = settings or get_settings()
        self.base_url = (base_url or settings.medical_force_base_url).rstrip("/")
        self.api_token = api_token if api_token is not None else settings.medical_force_api_token
        self.clinic_id = clinic_id if clinic_id is not None else settings.clinic_id
        self.timeout = timeout or settings.request_timeout_seconds
        self.max_page_size = settings.sync_max_page_size

        self.headers: dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.api_token:
            self.headers["Authorization"] = f"Bearer {self.api_token}"

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET a JSON document, classifying failures for the sync orchestrator."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, headers=self.headers, params=params)
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429 or status >= 500:
                logger.warning(f"Reservations API unavailable ({status})")
                raise TransientFetchError(f"HTTP {status} from reservations API") from e
            raise FatalFetchError(f"Reservations API rejected request: HTTP {status}") from e

        except httpx.RequestError as e:
            logger.warning(f"Request error: {e}")
            raise TransientFetchError(f"Request error: {e}") from e

        except ValueError as e:
            raise FatalFetchError(f"Reservations API returned invalid JSON: {e}") from e

    async def _post(self, url: str, payload: dict[str, Any]) -> Any:
        """POST a JSON body; every failure becomes RemoteCreateError."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, headers=self.headers, json=payload)
                response.raise_for_status()
                return response.json() if response.content else None

        except httpx.HTTPStatusError as e:
            message = f"HTTP {e.response.status_code}"
            try:
                body = e.response.json()
                if isinstance(body, dict) and body.get("message"):
                    message += f" - {body['message']}"
            except ValueError:
                pass
            raise RemoteCreateError(
                f"Reservation create failed: {message}", status_code=e.response.status_code
            ) from e

        except httpx.RequestError as e:
            raise RemoteCreateError(f"Reservation create failed: {e}") from e

        except ValueError as e:
            raise RemoteCreateError(f"Reservation create returned invalid JSON: {e}") from e

    @staticmethod
    def normalize_page(body: Any) -> tuple[list[dict[str, Any]], int | None]:
        """
        Normalize a reservations response into (items, total_count).

        Accepts a bare array, `{items, count}`, or either of them wrapped in a
        `{success, data}` envelope.
        """
        if isinstance(body, dict) and "data" in body:
            if body.get("success") is False:
                error = body.get("error") or {}
                message = error.get("message") if isinstance(error, dict) else error
                raise TransientFetchError(f"Reservations API reported failure: {message}")
            body = body["data"]

        if isinstance(body, list):
            return body, None

        if isinstance(body, dict):
            items = body.get("items") or []
            count = body.get("count")
            if not isinstance(items, list):
                raise FatalFetchError("Reservations API returned non-list items")
            if count is None:
                return items, None
            try:
                return items, int(count)
            except (TypeError, ValueError) as e:
                raise FatalFetchError(f"Reservations API returned invalid count: {count!r}") from e

        raise FatalFetchError(f"Unexpected reservations response: {type(body).__name__}")

    async def fetch_page(
        self,
        date_from: date,
        date_to: date,
        limit: int,
        offset: int,
    ) -> PageResult:
        """
        Fetch one page of reservations for a date window.

        Args:
            date_from: First day of the window (inclusive)
            date_to: Last day of the window (inclusive)
            limit: Page size, capped at the API maximum
            offset: Pagination offset

        Returns:
            Normalized page; items without an id are dropped
        """
        if date_from > date_to:
            raise FatalFetchError(f"Invalid window: {date_from} is after {date_to}")

        limit = max(1, min(limit, self.max_page_size))
        params: dict[str, Any] = {
            "clinic_id": self.clinic_id,
            "date_from": date_from.isoformat(),
            "date_to": date_to.isoformat(),
            "limit": limit,
            "offset": offset,
        }

        logger.info(f"Fetching reservations {date_from}..{date_to}: limit={limit}, offset={offset}")
        body = await self._get(f"{self.base_url}{RESERVATIONS_ENDPOINT}", params=params)
        items, total_count = self.normalize_page(body)

        records = []
        for item in items:
            record = to_sync_record(item, date_from, date_to) if isinstance(item, dict) else None
            if record is None:
                logger.warning("Skipping reservation without id")
                continue
            records.append(record)

        logger.info(f"Fetched {len(items)} reservations (total {total_count})")
        return PageResult(records=records, total_count=total_count, raw_count=len(items))

    async def create_reservation(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Create a reservation.

        Returns:
            The created reservation as returned by the API

        Raises:
            RemoteCreateError: on any HTTP, network or payload failure
        """
        body = {"clinic_id": self.clinic_id, **payload}
        logger.info(f"Creating reservation for visitor {payload.get('visitor_id')}")
        result = await self._post(f"{self.base_url}{RESERVATIONS_ENDPOINT}", body)

        if isinstance(result, dict) and "data" in result and "success" in result:
            if not result["success"]:
                raise RemoteCreateError("Reservation create reported failure")
            result = result["data"]

        if not isinstance(result, dict):
            raise RemoteCreateError("Reservation create returned no reservation")

        return result


def get_medical_force_client() -> MedicalForceClient:
    """Dependency for getting an API client."""
    return MedicalForceClient()
