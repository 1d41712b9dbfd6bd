# dependencies.py
from functools import lru_cache

from config import settings
from payment.gateway import PaymentGateway, build_payment_gateway
from storage.client import StorageClient, build_storage_client


@lru_cache
def get_storage_client() -> StorageClient:
    """Process-wide storage client, built on first use."""
    return build_storage_client(settings)


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """Process-wide Stripe gateway, built on first use."""
    return build_payment_gateway(settings)
