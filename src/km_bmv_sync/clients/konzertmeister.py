"""Konzertmeister REST client.

## Endpoint
- Base URL: https://rest.konzertmeister.app/
- Format: JSON

## Authentication
`POST api/v2/login` with

```json
{"mail": "...", "password": "...", "locale": "de_US", "timezoneId": "Europe/Vienna"}
```

A successful login answers 200 and sets an `Authorization` cookie
(`Set-Cookie: Authorization=eyJ...; Path=/; HttpOnly`). The cookie pairs are
sent back as `Cookie` header on every following request.

## Appointments
`POST api/v3/app/getpaged/<page>` with an `AppointmentQuery` body returns one
page of appointments as a JSON array. Pages are numbered from 0; an empty
array marks the end.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx
from pydantic import TypeAdapter, ValidationError

from km_bmv_sync.clients.base import AuthenticationError, ClientError, ServiceClient
from km_bmv_sync.config import Settings
from km_bmv_sync.models.appointment import Appointment, AppointmentQuery

logger = logging.getLogger(__name__)

_APPOINTMENT_LIST = TypeAdapter(list[Appointment])


class KonzertmeisterClient(ServiceClient):
    """Client for the Konzertmeister appointment API.

    Example:
        ```python
        async with KonzertmeisterClient.from_settings(settings) as km:
            if await km.login():
                appointments = await km.get_all_appointments(AppointmentQuery())
        ```
    """

    name = "konzertmeister"

    def __init__(
        self,
        base_url: str,
        mail: str,
        password: str,
        locale: str = "de_US",
        timezone_id: str = "Europe/Vienna",
        timeout: float = 60.0,
        max_pages: int = 200,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(base_url, timeout=timeout, transport=transport)
        self.mail = mail
        self.password = password
        self.locale = locale
        self.timezone_id = timezone_id
        self.max_pages = max_pages
        self._cookie: str | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> KonzertmeisterClient:
        return cls(
            base_url=settings.km_base_url,
            mail=settings.km_username,
            password=settings.km_password,
            locale=settings.km_locale,
            timezone_id=settings.km_timezone_id,
            timeout=settings.km_timeout_seconds,
            max_pages=settings.km_max_pages,
            transport=transport,
        )

    @property
    def is_logged_in(self) -> bool:
        return self._cookie is not None

    async def login(self) -> bool:
        """Log in and keep the session cookie for subsequent calls.

        Returns:
            True on success, False otherwise (the reason is logged)
        """
        client = self._get_client()
        payload = {
            "mail": self.mail,
            "password": self.password,
            "locale": self.locale,
            "timezoneId": self.timezone_id,
        }
        try:
            response = await client.post("api/v2/login", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Konzertmeister login error: {e}")
            return False

        if response.status_code != 200:
            logger.error(f"Konzertmeister login failed: HTTP {response.status_code}")
            return False

        set_cookie_headers = response.headers.get_list("set-cookie")
        if not set_cookie_headers:
            logger.error('No "Set-Cookie" header found in Konzertmeister login response')
            return False

        # Keep only the name=value pairs, drop Path/HttpOnly/... attributes
        self._cookie = "; ".join(line.split(";")[0].strip() for line in set_cookie_headers)
        client.headers["Cookie"] = self._cookie
        return True

    async def fetch_page(self, page: int, query: AppointmentQuery) -> list[Appointment]:
        """Fetch one page of appointments.

        Args:
            page: Zero-based page number
            query: Appointment filter

        Raises:
            AuthenticationError: If `login()` has not succeeded
            ClientError: If the request fails or the payload is invalid
        """
        if page < 0:
            raise ValueError(f"Page number must not be negative: {page}")
        if not self.is_logged_in:
            raise AuthenticationError(
                "Not logged in. Call login() before fetching appointments.",
                service=self.name,
            )

        path = f"api/v3/app/getpaged/{page}"
        try:
            data = await self._read("POST", path, json=query.to_payload())
        except httpx.HTTPError as e:
            raise ClientError(f"Failed to fetch page {page}: {e}", service=self.name) from e

        try:
            return _APPOINTMENT_LIST.validate_python(data)
        except ValidationError as e:
            raise ClientError(
                f"Invalid appointments on page {page}: {e}", service=self.name
            ) from e

    async def iter_pages(self, query: AppointmentQuery) -> AsyncIterator[list[Appointment]]:
        """Yield non-empty pages from page 0 until the first empty page.

        Each call starts over at page 0. There is no resuming: an error on
        any page propagates to the caller.

        Raises:
            ClientError: If more than `max_pages` non-empty pages are returned
        """
        for page in range(self.max_pages):
            batch = await self.fetch_page(page, query)
            if not batch:
                return
            logger.debug(f"Fetched page {page} with {len(batch)} appointments")
            yield batch

        raise ClientError(
            f"Paging did not end within {self.max_pages} pages",
            service=self.name,
        )

    async def get_all_appointments(self, query: AppointmentQuery) -> list[Appointment]:
        """Fetch all appointments across all pages."""
        appointments: list[Appointment] = []
        async for batch in self.iter_pages(query):
            appointments.extend(batch)
        return appointments
