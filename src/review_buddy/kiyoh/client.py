"""Kiyoh publication and invite API client."""

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from review_buddy.brand import BrandSettings
from review_buddy.config import settings
from review_buddy.kiyoh.models import KiyohReviewPage

logger = logging.getLogger(__name__)


class KiyohAPIError(Exception):
    """Kiyoh rejected a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class KiyohNotConfiguredError(KiyohAPIError):
    """API key or location id is missing."""

    pass


class KiyohRateLimitError(KiyohAPIError):
    """Raised when the API rate limit is hit."""

    pass


def _error_message(response: httpx.Response) -> str:
    """Pull the most specific error message out of a Kiyoh error response."""
    try:
        data = response.json()
    except ValueError:
        data = {}
    if isinstance(data, dict):
        detailed = data.get("detailedError") or []
        if detailed and isinstance(detailed[0], dict) and detailed[0].get("message"):
            return detailed[0]["message"]
        if data.get("errorCode"):
            return str(data["errorCode"])
    return f"Kiyoh API error: {response.status_code}"


class KiyohClient:
    """Async client for one Kiyoh location."""

    def __init__(
        self,
        api_key: str,
        location_id: str,
        tenant_id: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        if not api_key or not location_id:
            raise KiyohNotConfiguredError("Kiyoh API key and location ID are required")
        self.api_key = api_key
        self.location_id = location_id
        self.tenant_id = tenant_id or settings.KIYOH_DEFAULT_TENANT_ID
        self.base_url = (base_url or settings.KIYOH_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.KIYOH_TIMEOUT

    @classmethod
    def from_brand(cls, brand: BrandSettings) -> "KiyohClient":
        """Build a client from brand settings.

        Raises:
            KiyohNotConfiguredError: If credentials are missing
        """
        if not brand.kiyoh_configured:
            raise KiyohNotConfiguredError("Kiyoh API credentials not configured")
        return cls(brand.kiyoh_api_key, brand.kiyoh_location_id, brand.kiyoh_tenant_id)

    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, KiyohRateLimitError)),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> Any:
        """Make an authenticated request to the Kiyoh API."""
        headers = {
            "X-Publication-Api-Token": self.api_key,
            "Content-Type": "application/json",
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.request(
                method, f"{self.base_url}{endpoint}", headers=headers, params=params, json=json
            )

        if response.status_code == 429:
            logger.warning("Kiyoh rate limit hit")
            raise KiyohRateLimitError("Kiyoh rate limit exceeded", status_code=429)

        if not response.is_success:
            raise KiyohAPIError(_error_message(response), status_code=response.status_code)

        if not response.content:
            return {"success": True}
        try:
            return response.json()
        except ValueError:
            return {"success": True}

    async def fetch_reviews(
        self,
        date_since: str | None = None,
        updated_since: str | None = None,
        limit: int | None = 50,
        order_by: str = "CREATE_DATE",
        sort_order: str = "DESC",
    ) -> KiyohReviewPage:
        """Fetch published reviews for the location."""
        params: dict[str, Any] = {
            "locationId": self.location_id,
            "tenantId": self.tenant_id,
        }
        if date_since:
            params["dateSince"] = date_since
        if updated_since:
            params["updatedSince"] = updated_since
        if limit:
            params["limit"] = limit
        if order_by:
            params["orderBy"] = order_by
        if sort_order:
            params["sortOrder"] = sort_order

        data = await self._request("GET", "/v1/publication/review/external", params=params)
        page = KiyohReviewPage.from_api(data or {})
        logger.info(f"Fetched {len(page.reviews)} reviews from Kiyoh location {self.location_id}")
        return page

    async def post_response(
        self,
        review_id: str,
        response: str,
        response_type: str = "PUBLIC",
        send_email: bool = False,
    ) -> dict[str, Any]:
        """Publish a reply to a review."""
        if not review_id or not response:
            raise ValueError("Review ID and response text are required")

        return await self._request(
            "PUT",
            "/v1/publication/review/response",
            json={
                "locationId": self.location_id,
                "tenantId": self.tenant_id,
                "reviewId": review_id,
                "response": response,
                "reviewResponseType": response_type,
                "responseEmail": "true" if send_email else "false",
            },
        )

    async def send_invite(
        self,
        email: str,
        first_name: str = "",
        last_name: str = "",
        delay: int = 0,
        language: str = "en",
        ref_code: str = "",
    ) -> dict[str, Any]:
        """Invite a customer to write a review."""
        if not email:
            raise ValueError("Invite email is required")

        return await self._request(
            "POST",
            "/v1/invite/external",
            json={
                "location_id": self.location_id,
                "invite_email": email,
                "delay": delay,
                "first_name": first_name,
                "last_name": last_name,
                "ref_code": ref_code,
                "language": language,
            },
        )

    async def location_stats(self) -> dict[str, Any]:
        """Get rating statistics for the location."""
        return await self._request(
            "GET",
            "/v1/publication/review/external/location/statistics",
            params={"locationId": self.location_id},
        )
