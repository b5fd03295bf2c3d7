"""BMV data service client.

## Endpoint
- Base URL: https://api.vbv-blasmusik.at/api/
- Auth: HTTP Basic (BMV user name and password)
- Format: JSON

## Operations

### Check credentials
`GET CheckBMVBenutzer` returns a boolean-ish body (`true` / `"true"`).

### List activities
`GET Ausrueckungen/?datum=<ISO 8601>&anz=10000`

Returns all activities ("Ausrückungen") from `datum` onwards as a JSON
array of objects with German column names (see `km_bmv_sync.models.activity`).

### Create activities
`POST Ausrueckungen/` with a JSON array of activities. Every activity must
carry a client-generated GUID in `ID`. The batch is applied as a whole.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import ValidationError

from km_bmv_sync.clients.base import ClientError, ServiceClient
from km_bmv_sync.config import Settings
from km_bmv_sync.models.activity import Activity, NewActivity

logger = logging.getLogger(__name__)

# Upper bound of activities returned by the list endpoint
MAX_ACTIVITIES = 10000


def format_filter_date(value: datetime) -> str:
    """Format a datetime as UTC ISO 8601 with milliseconds and `Z` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BmvClient(ServiceClient):
    """Client for the BMV activity service.

    Example:
        ```python
        async with BmvClient.from_settings(settings) as bmv:
            if await bmv.verify_credentials():
                activities = await bmv.get_activities(since)
        ```
    """

    name = "bmv"

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not base_url or not username or not password:
            raise ValueError("Missing required parameters: base_url, username or password")
        super().__init__(
            base_url,
            timeout=timeout,
            auth=(username, password),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> BmvClient:
        return cls(
            base_url=settings.bmv_base_url,
            username=settings.bmv_username,
            password=settings.bmv_password,
            timeout=settings.bmv_timeout_seconds,
            transport=transport,
        )

    async def verify_credentials(self) -> bool:
        """Check the credentials against `CheckBMVBenutzer`.

        Returns:
            True if the service accepts the user, False otherwise
            (including transport errors, which are logged)
        """
        client = self._get_client()
        try:
            response = await client.get("CheckBMVBenutzer")
        except httpx.HTTPError as e:
            logger.error(f"BMV credential check failed: {e}")
            return False

        if response.status_code != 200:
            logger.error(f"BMV credential check rejected: HTTP {response.status_code}")
            return False

        try:
            body = response.json()
        except ValueError:
            body = response.text.strip().strip('"')

        if isinstance(body, str):
            return body.lower() == "true"
        return bool(body)

    async def get_activities(self, since: datetime) -> list[Activity]:
        """Fetch all activities from `since` onwards.

        Args:
            since: Start of the window

        Returns:
            Validated activities (may be empty)

        Raises:
            ClientError: If the request fails or the payload is not a list
                of activities. A missing payload is an error, not an
                empty result.
        """
        params = {"datum": format_filter_date(since), "anz": MAX_ACTIVITIES}
        try:
            data = await self._read("GET", "Ausrueckungen/", params=params)
        except httpx.HTTPError as e:
            raise ClientError(f"Failed to fetch activities: {e}", service=self.name) from e

        if not isinstance(data, list):
            raise ClientError(
                f"Unexpected activities payload: {type(data).__name__}",
                service=self.name,
            )

        try:
            return [Activity.model_validate(item) for item in data]
        except ValidationError as e:
            raise ClientError(f"Invalid activity in response: {e}", service=self.name) from e

    async def post_activities(self, activities: Sequence[NewActivity]) -> bool:
        """Create activities in one batch.

        Activities without an ID get a random UUID4.

        Returns:
            True if the service answered with 2xx, False otherwise
        """
        payload = [self._with_id(activity.to_payload()) for activity in activities]
        logger.debug(f"Posting {len(payload)} activities: {payload}")

        client = self._get_client()
        try:
            response = await client.post("Ausrueckungen/", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Posting {len(payload)} activities failed: {e}")
            return False

        if not response.is_success:
            logger.error(
                f"Posting {len(payload)} activities rejected: "
                f"HTTP {response.status_code} {response.text}"
            )
            return False
        return True

    @staticmethod
    def _with_id(item: dict[str, Any]) -> dict[str, Any]:
        if item.get("ID"):
            return item
        return {"ID": str(uuid.uuid4()), **{k: v for k, v in item.items() if k != "ID"}}
