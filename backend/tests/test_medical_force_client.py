"""Tests for the Medical Force API client."""

from datetime import date
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import make_reservation
from reservesync.exceptions import FatalFetchError, RemoteCreateError, TransientFetchError
from reservesync.services.medical_force_client import RESERVATIONS_ENDPOINT, MedicalForceClient

URL = f"https://mf.test{RESERVATIONS_ENDPOINT}"


def _response(status_code: int, json=None, method: str = "GET") -> httpx.Response:
    return httpx.Response(status_code, json=json, request=httpx.Request(method, URL))


class TestMedicalForceClient:
    """Tests for MedicalForceClient."""

    def test_init_with_token(self, test_settings):
        """Test client initialization with an API token."""
        client = MedicalForceClient(test_settings)
        assert client.base_url == "https://mf.test"
        assert client.headers["Authorization"] == "Bearer test_token"
        assert client.clinic_id == "clinic-1"

    def test_init_without_token(self, test_settings):
        """Test client initialization without an API token."""
        client = MedicalForceClient(test_settings, api_token="")
        assert "Authorization" not in client.headers

    @pytest.mark.asyncio
    async def test_fetch_page_items_with_count(self, test_settings):
        """Test the {success, data: {items, count}} shape."""
        client = MedicalForceClient(test_settings)
        items = [make_reservation(1), make_reservation(2)]
        client._get = AsyncMock(
            return_value={"success": True, "data": {"items": items, "count": 1200}}
        )

        page = await client.fetch_page(date(2024, 1, 1), date(2024, 1, 14), limit=500, offset=500)

        assert [r.key for r in page.records] == ["R00001", "R00002"]
        assert page.total_count == 1200
        assert page.raw_count == 2
        assert page.records[0].window_start == date(2024, 1, 1)

        params = client._get.call_args[1]["params"]
        assert params == {
            "clinic_id": "clinic-1",
            "date_from": "2024-01-01",
            "date_to": "2024-01-14",
            "limit": 500,
            "offset": 500,
        }

    @pytest.mark.asyncio
    async def test_fetch_page_bare_array(self, test_settings):
        """Test a bare array response has no total count."""
        client = MedicalForceClient(test_settings)
        client._get = AsyncMock(return_value={"success": True, "data": [make_reservation(1)]})

        page = await client.fetch_page(date(2024, 1, 1), date(2024, 1, 14), limit=500, offset=0)

        assert len(page.records) == 1
        assert page.total_count is None

    @pytest.mark.asyncio
    async def test_fetch_page_unwrapped_array(self, test_settings):
        """Test an array returned without the envelope."""
        client = MedicalForceClient(test_settings)
        client._get = AsyncMock(return_value=[make_reservation(1), make_reservation(2)])

        page = await client.fetch_page(date(2024, 1, 1), date(2024, 1, 14), limit=500, offset=0)

        assert page.raw_count == 2
        assert page.total_count is None

    @pytest.mark.asyncio
    async def test_fetch_page_skips_items_without_id(self, test_settings):
        """Test items without an id are dropped but still counted as fetched."""
        client = MedicalForceClient(test_settings)
        anonymous = make_reservation(2)
        del anonymous["id"]
        client._get = AsyncMock(
            return_value={"success": True, "data": {"items": [make_reservation(1), anonymous], "count": 2}}
        )

        page = await client.fetch_page(date(2024, 1, 1), date(2024, 1, 14), limit=500, offset=0)

        assert [r.key for r in page.records] == ["R00001"]
        assert page.raw_count == 2

    @pytest.mark.asyncio
    async def test_fetch_page_caps_limit(self, test_settings):
        """Test the page size never exceeds the API maximum."""
        client = MedicalForceClient(test_settings)
        client._get = AsyncMock(return_value=[])

        await client.fetch_page(date(2024, 1, 1), date(2024, 1, 14), limit=5000, offset=0)

        assert client._get.call_args[1]["params"]["limit"] == 500

    @pytest.mark.asyncio
    async def test_fetch_page_inverted_window(self, test_settings):
        """Test an inverted date window is rejected without a request."""
        client = MedicalForceClient(test_settings)
        client._get = AsyncMock()

        with pytest.raises(FatalFetchError):
            await client.fetch_page(date(2024, 1, 14), date(2024, 1, 1), limit=500, offset=0)
        client._get.assert_not_called()

    @pytest.mark.asyncio
    async def test_fetch_page_invalid_count(self, test_settings):
        """Test a non-numeric total count is a fatal error."""
        client = MedicalForceClient(test_settings)
        client._get = AsyncMock(
            return_value={"success": True, "data": {"items": [make_reservation(1)], "count": "many"}}
        )

        with pytest.raises(FatalFetchError, match="invalid count"):
            await client.fetch_page(date(2024, 1, 1), date(2024, 1, 14), limit=500, offset=0)

    @pytest.mark.asyncio
    async def test_fetch_page_reported_failure(self, test_settings):
        """Test success=false is treated as transient."""
        client = MedicalForceClient(test_settings)
        client._get = AsyncMock(
            return_value={"success": False, "data": None, "error": {"message": "busy"}}
        )

        with pytest.raises(TransientFetchError, match="busy"):
            await client.fetch_page(date(2024, 1, 1), date(2024, 1, 14), limit=500, offset=0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [429, 500, 503])
    async def test_get_transient_status(self, test_settings, status_code):
        """Test rate limiting and server errors are transient."""
        client = MedicalForceClient(test_settings)

        with patch.object(httpx.AsyncClient, "get", AsyncMock(return_value=_response(status_code))):
            with pytest.raises(TransientFetchError):
                await client._get(URL)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 401, 404])
    async def test_get_fatal_status(self, test_settings, status_code):
        """Test other client errors are fatal."""
        client = MedicalForceClient(test_settings)

        with patch.object(httpx.AsyncClient, "get", AsyncMock(return_value=_response(status_code))):
            with pytest.raises(FatalFetchError):
                await client._get(URL)

    @pytest.mark.asyncio
    async def test_get_network_error(self, test_settings):
        """Test network errors are transient."""
        client = MedicalForceClient(test_settings)

        with patch.object(
            httpx.AsyncClient, "get", AsyncMock(side_effect=httpx.ConnectTimeout("timed out"))
        ):
            with pytest.raises(TransientFetchError):
                await client._get(URL)

    @pytest.mark.asyncio
    async def test_create_reservation_unwraps_envelope(self, test_settings):
        """Test the created reservation is returned without the envelope."""
        client = MedicalForceClient(test_settings)
        client._post = AsyncMock(return_value={"success": True, "data": {"id": "R90000"}})

        created = await client.create_reservation({"visitor_id": "V1"})

        assert created == {"id": "R90000"}
        body = client._post.call_args[0][1]
        assert body == {"clinic_id": "clinic-1", "visitor_id": "V1"}

    @pytest.mark.asyncio
    async def test_create_reservation_http_error(self, test_settings):
        """Test HTTP errors on create carry the status code and API message."""
        client = MedicalForceClient(test_settings)
        response = _response(422, json={"message": "slot taken"}, method="POST")

        with patch.object(httpx.AsyncClient, "post", AsyncMock(return_value=response)):
            with pytest.raises(RemoteCreateError, match="slot taken") as exc_info:
                await client.create_reservation({"visitor_id": "V1"})

        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_create_reservation_reported_failure(self, test_settings):
        """Test success=false on create is a RemoteCreateError."""
        client = MedicalForceClient(test_settings)
        client._post = AsyncMock(return_value={"success": False, "data": None})

        with pytest.raises(RemoteCreateError):
            await client.create_reservation({"visitor_id": "V1"})
