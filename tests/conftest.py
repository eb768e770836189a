"""
Shared fixtures for segsend tests.
"""

from __future__ import annotations

import pytest

from segsend.address import scriptpubkey_to_address
from segsend.backends.base import ChainBackend
from segsend.config import SendSettings
from segsend.errors import BroadcastError, NetworkError, NoFundsError
from segsend.keys import KeyPair
from segsend.models import UTXO, NetworkType, UTXOStatus
from segsend.transaction import TxInput, TxOutput, UnsignedTransaction, compute_txid

# Private key 1: its pubkey is the secp256k1 generator point G
GENERATOR_SECRET = (1).to_bytes(32, "big")

TEST_SECRET = bytes.fromhex("619c335025c7f4012e556c2a58b2506e30b8511b53ade95ea316fd8c3286feb9")


class FakeBackend(ChainBackend):
    """In-memory gateway recording every call."""

    def __init__(
        self,
        utxos: list[UTXO] | None = None,
        transactions: dict[str, bytes] | None = None,
        broadcast_error: str | None = None,
        utxo_error: Exception | None = None,
    ):
        self.utxos = utxos or []
        self.transactions = transactions or {}
        self.broadcast_error = broadcast_error
        self.utxo_error = utxo_error
        self.calls: list[tuple[str, str]] = []
        self.broadcasts: list[bytes] = []
        self.closed = False

    async def get_utxos(self, address: str) -> list[UTXO]:
        self.calls.append(("get_utxos", address))
        if self.utxo_error is not None:
            raise self.utxo_error
        if not self.utxos:
            raise NoFundsError(f"No UTXOs found for address {address}")
        return list(self.utxos)

    async def get_raw_transaction(self, txid: str) -> bytes:
        self.calls.append(("get_raw_transaction", txid))
        if txid not in self.transactions:
            raise NetworkError(f"Transaction {txid} not found")
        return self.transactions[txid]

    async def broadcast_transaction(self, raw_tx: bytes) -> str:
        self.calls.append(("broadcast_transaction", raw_tx.hex()))
        self.broadcasts.append(raw_tx)
        if self.broadcast_error is not None:
            raise BroadcastError(self.broadcast_error, status_code=400)
        return compute_txid(raw_tx)

    async def close(self) -> None:
        self.closed = True


def make_funding_tx(script_pubkey: bytes, value: int, vout: int = 0) -> UnsignedTransaction:
    """A transaction paying ``value`` to ``script_pubkey`` at output ``vout``."""
    filler = bytes.fromhex("0014" + "11" * 20)
    outputs = [TxOutput(value=1000 + i, script_pubkey=filler) for i in range(vout)]
    outputs.append(TxOutput(value=value, script_pubkey=script_pubkey))
    total = sum(o.value for o in outputs)
    fee = 150
    return UnsignedTransaction(
        inputs=(
            TxInput(
                txid="ab" * 32,
                vout=3,
                value=total + fee,
                script_pubkey=bytes.fromhex("0014" + "22" * 20),
            ),
        ),
        outputs=tuple(outputs),
        fee=fee,
    )


def make_funded_utxo(keypair: KeyPair, value: int, vout: int = 0) -> tuple[UTXO, bytes]:
    """Return a UTXO for ``keypair`` and the raw source transaction creating it."""
    funding = make_funding_tx(keypair.script_pubkey, value, vout)
    utxo = UTXO(
        txid=funding.txid,
        vout=vout,
        value=value,
        status=UTXOStatus(confirmed=True, block_height=100),
    )
    return utxo, funding.serialize()


@pytest.fixture
def keypair() -> KeyPair:
    return KeyPair.from_secret(TEST_SECRET, NetworkType.TESTNET)


@pytest.fixture
def other_keypair() -> KeyPair:
    return KeyPair.from_secret(GENERATOR_SECRET, NetworkType.TESTNET)


@pytest.fixture
def destination_script() -> bytes:
    return bytes.fromhex("0014" + "ab" * 20)


@pytest.fixture
def destination_address(destination_script: bytes) -> str:
    return scriptpubkey_to_address(destination_script, NetworkType.TESTNET)


@pytest.fixture
def settings(destination_address: str) -> SendSettings:
    return SendSettings(
        _env_file=None,
        network=NetworkType.TESTNET,
        destination_address=destination_address,
        amount=1000,
        fee=200,
    )


@pytest.fixture
def funded_utxo():
    """Factory: ``funded_utxo(keypair, value, vout=0) -> (UTXO, raw source tx)``."""
    return make_funded_utxo


@pytest.fixture
def fake_backend():
    """Factory building a FakeBackend."""
    return FakeBackend
