"""Clients for the remote services."""

from km_bmv_sync.clients.base import AuthenticationError, ClientError, ServiceClient
from km_bmv_sync.clients.bmv import BmvClient
from km_bmv_sync.clients.konzertmeister import KonzertmeisterClient

__all__ = [
    "ServiceClient",
    "ClientError",
    "AuthenticationError",
    "BmvClient",
    "KonzertmeisterClient",
]
