"""FastAPI dependencies.

## Usage

```python
from fastapi import Depends
from km_bmv_sync.api.dependencies import require_token

@router.get("/sync", dependencies=[Depends(require_token)])
async def sync(): ...
```

Tests replace `get_sync_runner` via `app.dependency_overrides` to run
against fakes.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Awaitable, Callable

from fastapi import Depends, Header, HTTPException, Request, status

from km_bmv_sync.config import Settings
from km_bmv_sync.sync.engine import SyncResult, run_sync

logger = logging.getLogger(__name__)

SyncRunner = Callable[..., Awaitable[SyncResult]]


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_sync_runner() -> SyncRunner:
    """Coroutine function running one sync for the given settings."""
    return run_sync


async def require_token(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Require `Authorization: Bearer <AUTH_TOKEN>`.

    Raises 401 if the header is missing or the token does not match.
    """
    token = None
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer":
            token = credentials.strip()

    if not token or not hmac.compare_digest(token, settings.auth_token):
        logger.warning("Rejected sync request with missing or invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
