"""
Payment gateway settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings so gateway credentials can be loaded
(and overridden in tests) without touching the application settings.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class PhonePeSettings(BaseModel):
    merchant_id: Optional[str] = None
    salt_key: Optional[str] = None
    salt_index: str = "1"
    base_url: str = "https://api-preprod.phonepe.com/apis/pg-sandbox"
    pay_path: str = "/pg/v1/pay"
    status_path: str = "/pg/v1/status"


class MockGatewaySettings(BaseModel):
    # Hosted pay page base (the API itself serves /payment/mock/pay)
    public_base_url: str = "http://localhost:8000/api/v1/payment/mock"
    merchant_id: str = "MOCKMERCHANT"
    salt_key: str = "mock-salt-key"
    salt_index: str = "1"
    state_ttl_seconds: int = 3600


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="phonepe", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)

    phonepe: PhonePeSettings = Field(default_factory=PhonePeSettings)
    mock: MockGatewaySettings = Field(default_factory=MockGatewaySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
