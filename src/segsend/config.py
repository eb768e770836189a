"""
Configuration for the send pipeline.

Values come from keyword arguments, ``SEGSEND_*`` environment variables or a
``.env`` file, in that order of precedence.
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from segsend.address import address_to_scriptpubkey
from segsend.errors import AddressError
from segsend.builder import DustPolicy
from segsend.constants import (
    DEFAULT_AMOUNT,
    DEFAULT_API_URL,
    DEFAULT_EXPLORER_URL,
    DEFAULT_FEE,
    DEFAULT_REQUEST_TIMEOUT,
    P2WPKH_DUST_LIMIT,
)
from segsend.models import NetworkType


class SendSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SEGSEND_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: NetworkType = NetworkType.TESTNET

    # Wallet key (WIF, compressed). Kept out of repr so it never reaches the logs.
    wif: str = Field(default="", repr=False)

    # Payment
    destination_address: str = ""
    amount: int = Field(default=DEFAULT_AMOUNT, gt=0, description="Satoshis to pay")
    fee: int = Field(default=DEFAULT_FEE, ge=0, description="Fixed fee in satoshis")

    # Indexing service
    api_url: str = DEFAULT_API_URL
    explorer_url: str = DEFAULT_EXPLORER_URL
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)

    # Selection and change policy
    min_confirmations: int = Field(default=0, ge=0)
    dust_policy: DustPolicy = DustPolicy.KEEP
    dust_threshold: int = Field(default=P2WPKH_DUST_LIMIT, ge=0)

    log_level: str = "INFO"

    @model_validator(mode="after")
    def validate_destination(self) -> SendSettings:
        """An explicit destination must belong to the configured network."""
        if self.destination_address:
            address_to_scriptpubkey(self.destination_address, self.network)
        return self

    @property
    def min_utxo_value(self) -> int:
        """Smallest UTXO able to fund the payment on its own."""
        return self.amount + self.fee

    @property
    def destination_script(self) -> bytes:
        if not self.destination_address:
            raise AddressError("destination_address is not configured")
        return address_to_scriptpubkey(self.destination_address, self.network)


def get_settings(**overrides: object) -> SendSettings:
    return SendSettings(**overrides)
