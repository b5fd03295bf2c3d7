"""FastAPI application and routes.

## API Structure

- /health - Liveness check
- /sync - Trigger a Konzertmeister to BMV sync

## Authentication

`/sync` requires `Authorization: Bearer <AUTH_TOKEN>`.
"""

from km_bmv_sync.api.app import create_app

__all__ = ["create_app"]
