"""
config.py — Service Configuration

Settings are read from environment variables by `load_settings()`.

Webhook security is a tagged variant rather than an optional secret: either
`SignedWebhooks` (a shared secret is configured) or `InsecureWebhooks`
(explicitly requested with WEBHOOK_INSECURE=1). A missing secret without the
explicit opt-in is a configuration error.
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from .errors import ConfigurationError


class SignedWebhooks(BaseModel):
    mode: Literal["signed"] = "signed"
    secret: str = Field(..., min_length=1, repr=False)


class InsecureWebhooks(BaseModel):
    mode: Literal["insecure"] = "insecure"


class ProcessorSettings(BaseModel):
    """
    Connection settings for the external payment processor.

    Attributes:
        base_url (str): Processor base URL, e.g. 'https://btcpay.example.com'.
        api_key (str): API credential, sent as 'Authorization: token <key>'.
        store_id (str): Store identifier used in the invoice endpoint path.
        verify_tls (bool): Verify the processor's TLS certificate. Disable for local dev only.
        timeout (float): Connect/read timeout in seconds.
    """
    base_url: str = "http://localhost:8002"
    api_key: str = Field("", repr=False)
    store_id: str = ""
    verify_tls: bool = True
    timeout: float = 10.0


class CheckoutPolicy(BaseModel):
    speed_policy: str = "MediumSpeed"
    expiration_minutes: int = 15
    monitoring_minutes: int = 15
    payment_methods: list = Field(default_factory=lambda: ["BTC"])


class Settings(BaseModel):
    processor: ProcessorSettings = Field(default_factory=ProcessorSettings)
    checkout: CheckoutPolicy = Field(default_factory=CheckoutPolicy)
    webhook: Union[SignedWebhooks, InsecureWebhooks] = Field(..., discriminator="mode")
    public_base_url: str = "http://localhost:3000"
    catalog_price: Decimal = Field(Decimal("10"), gt=0)
    default_currency: str = "USD"
    log_file: Optional[str] = "order_settlement.log"
    port: int = 3000


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ=None) -> Settings:
    """
    Builds `Settings` from environment variables.

    Args:
        environ (Mapping[str, str], optional): Source of variables, defaults to os.environ.

    Raises:
        ConfigurationError: If webhook security is undecided or contradictory,
            or if CATALOG_PRICE or PORT is malformed.
    """
    env = os.environ if environ is None else environ

    secret = env.get("WEBHOOK_SECRET") or None
    insecure = _flag(env.get("WEBHOOK_INSECURE"))
    if secret and insecure:
        raise ConfigurationError("WEBHOOK_SECRET and WEBHOOK_INSECURE=1 are mutually exclusive")
    if secret:
        webhook = SignedWebhooks(secret=secret)
    elif insecure:
        webhook = InsecureWebhooks()
    else:
        raise ConfigurationError(
            "WEBHOOK_SECRET is not set. Set it, or set WEBHOOK_INSECURE=1 to accept unsigned webhooks."
        )

    try:
        price = Decimal(env.get("CATALOG_PRICE", "10"))
    except InvalidOperation:
        raise ConfigurationError(f"CATALOG_PRICE is not a number: {env.get('CATALOG_PRICE')!r}") from None

    try:
        port = int(env.get("PORT", "3000"))
    except ValueError:
        raise ConfigurationError(f"PORT is not an integer: {env.get('PORT')!r}") from None

    return Settings(
        processor=ProcessorSettings(
            base_url=env.get("PROCESSOR_URL", "http://localhost:8002").rstrip("/"),
            api_key=env.get("PROCESSOR_API_KEY", ""),
            store_id=env.get("PROCESSOR_STORE_ID", ""),
            verify_tls=_flag(env.get("PROCESSOR_VERIFY_TLS", "1")),
        ),
        webhook=webhook,
        public_base_url=env.get("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/"),
        catalog_price=price,
        default_currency=env.get("DEFAULT_CURRENCY", "USD"),
        log_file=env.get("LOG_FILE", "order_settlement.log") or None,
        port=port,
    )
