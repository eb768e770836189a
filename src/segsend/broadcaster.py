"""
Submits finalized transactions to the relay.
"""

from __future__ import annotations

from loguru import logger

from segsend.backends.base import ChainBackend
from segsend.models import BroadcastResult
from segsend.transaction import SignedTransaction


class Broadcaster:
    """
    Serializes a SignedTransaction and hands it to the gateway.

    No script validation happens here; the relay is the authority on whether
    the transaction is acceptable.
    """

    def __init__(self, backend: ChainBackend, explorer_url: str | None = None):
        self.backend = backend
        self.explorer_url = explorer_url.rstrip("/") if explorer_url else None

    @staticmethod
    def serialize(signed: SignedTransaction) -> bytes:
        return signed.serialize()

    def tx_url(self, txid: str) -> str | None:
        if not self.explorer_url:
            return None
        return f"{self.explorer_url}/tx/{txid}"

    async def broadcast(self, signed: SignedTransaction) -> BroadcastResult:
        raw = self.serialize(signed)
        logger.info(f"Broadcasting transaction ({len(raw)} bytes, {signed.vsize} vB)...")

        txid = await self.backend.broadcast_transaction(raw)
        if txid != signed.txid:
            logger.warning(f"Relay returned txid {txid}, locally computed {signed.txid}")

        return BroadcastResult(txid=txid, raw_hex=raw.hex(), explorer_url=self.tx_url(txid))
