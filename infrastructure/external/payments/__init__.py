"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import payment_settings
from application.ports.payment_gateway import PaymentGateway
from infrastructure.external.cache.redis_client import RedisClient


def get_payment_gateway(provider: Optional[str] = None, *, redis: Optional[RedisClient] = None) -> PaymentGateway:
    """Build the configured gateway; the mock gateway keeps its state in Redis when given a client."""
    name = (provider or payment_settings.default_provider).lower()
    if name == "phonepe":
        from .phonepe_client import PhonePeClient
        return PhonePeClient()
    if name == "mock":
        from .mock_client import InMemoryGatewayStateStore, MockGatewayClient, RedisGatewayStateStore
        store = RedisGatewayStateStore(redis) if redis is not None else InMemoryGatewayStateStore()
        return MockGatewayClient(store)
    raise ValueError(f"Unsupported payment provider: {name}")
