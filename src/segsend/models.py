"""
Data models for chain data and pipeline results, using Pydantic for validation.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"

    @property
    def hrp(self) -> str:
        """Bech32 human-readable part for segwit addresses."""
        return {
            NetworkType.MAINNET: "bc",
            NetworkType.TESTNET: "tb",
            NetworkType.SIGNET: "tb",
            NetworkType.REGTEST: "bcrt",
        }[self]

    @property
    def wif_prefix(self) -> int:
        return 0x80 if self == NetworkType.MAINNET else 0xEF


class UTXOStatus(BaseModel):
    confirmed: bool = False
    block_height: int | None = Field(default=None, ge=0)
    block_hash: str | None = None
    block_time: int | None = None


class UTXO(BaseModel):
    """Unspent output as reported by the indexing service (``/address/{a}/utxo``)."""

    txid: str = Field(..., min_length=64, max_length=64)
    vout: int = Field(..., ge=0)
    value: int = Field(..., ge=0, description="Value in satoshis")
    status: UTXOStatus = Field(default_factory=UTXOStatus)

    model_config = {"frozen": True}

    @field_validator("txid")
    @classmethod
    def validate_txid(cls, v: str) -> str:
        try:
            bytes.fromhex(v)
        except ValueError as e:
            raise ValueError(f"txid is not hex: {v}") from e
        return v.lower()

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"

    @property
    def confirmed(self) -> bool:
        return self.status.confirmed


class BroadcastResult(BaseModel):
    """Relay acceptance of a transaction. Says nothing about confirmation."""

    txid: str
    raw_hex: str
    explorer_url: str | None = None
