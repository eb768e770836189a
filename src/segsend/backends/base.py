"""
Base chain data gateway interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType

from segsend.models import UTXO


class ChainBackend(ABC):
    """
    Abstract chain data gateway.

    Implementations fetch UTXOs and raw transactions from an indexing service
    and relay signed transactions. Failures are never retried here; the first
    error propagates to the caller.
    """

    @abstractmethod
    async def get_utxos(self, address: str) -> list[UTXO]:
        """Get UTXOs for an address. Raises NoFundsError when there are none."""

    @abstractmethod
    async def get_raw_transaction(self, txid: str) -> bytes:
        """Get the raw serialized transaction for a txid"""

    @abstractmethod
    async def broadcast_transaction(self, raw_tx: bytes) -> str:
        """Broadcast a raw transaction, returns txid"""

    async def close(self) -> None:
        """Close backend connection"""
        pass

    async def __aenter__(self) -> ChainBackend:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
