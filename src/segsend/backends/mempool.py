"""
mempool.space / Esplora REST API backend.

Endpoints used:
- GET  {base}/address/{address}/utxo  -> [{txid, vout, value, status}, ...]
- GET  {base}/tx/{txid}/hex           -> raw transaction hex
- POST {base}/tx  (text/plain hex)    -> txid
"""

from __future__ import annotations

import httpx
from loguru import logger
from pydantic import ValidationError

from segsend.backends.base import ChainBackend
from segsend.constants import DEFAULT_API_URL, DEFAULT_REQUEST_TIMEOUT
from segsend.errors import BroadcastError, NetworkError, NoFundsError
from segsend.models import UTXO


def _is_txid(value: str) -> bool:
    if len(value) != 64:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


class MempoolBackend(ChainBackend):
    """
    Chain data gateway backed by an Esplora-compatible HTTP API.

    Every request is bounded by ``timeout``; a timeout is reported as a
    NetworkError like any other transport failure. Nothing is retried.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _request(
        self,
        method: str,
        endpoint: str,
        content: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}/{endpoint}"
        logger.debug(f"{method} {url}")

        try:
            return await self.client.request(
                method, url, content=content, headers=headers, timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out after {self.timeout}s: {method} {endpoint}")
            raise NetworkError(f"Timeout calling {endpoint}: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Request failed: {method} {endpoint} - {e}")
            raise NetworkError(f"Failed to call {endpoint}: {e}") from e

    async def get_utxos(self, address: str) -> list[UTXO]:
        logger.info(f"Fetching UTXOs for address: {address}")
        response = await self._request("GET", f"address/{address}/utxo")

        if response.is_error:
            raise NetworkError(
                f"Failed to fetch UTXOs: HTTP {response.status_code} {response.text.strip()}"
            )

        try:
            data = response.json()
            if not isinstance(data, list):
                raise ValueError(f"expected a list, got {type(data).__name__}")
            utxos = [UTXO.model_validate(item) for item in data]
        except (ValueError, ValidationError) as e:
            raise NetworkError(f"Malformed UTXO response: {e}") from e

        logger.info(f"Found {len(utxos)} UTXO(s)")
        if not utxos:
            raise NoFundsError(f"No UTXOs found for address {address}")

        return utxos

    async def get_raw_transaction(self, txid: str) -> bytes:
        logger.info(f"Fetching transaction hex for: {txid}")
        response = await self._request("GET", f"tx/{txid}/hex")

        if response.status_code == 404:
            raise NetworkError(f"Transaction {txid} not found")
        if response.is_error:
            raise NetworkError(
                f"Failed to fetch transaction {txid}: HTTP {response.status_code} "
                f"{response.text.strip()}"
            )

        try:
            raw = bytes.fromhex(response.text.strip())
        except ValueError as e:
            raise NetworkError(f"Transaction {txid} hex is malformed: {e}") from e

        if not raw:
            raise NetworkError(f"Transaction {txid} returned an empty body")
        return raw

    async def broadcast_transaction(self, raw_tx: bytes) -> str:
        response = await self._request(
            "POST",
            "tx",
            content=raw_tx.hex(),
            headers={"Content-Type": "text/plain"},
        )

        if response.is_error:
            reason = response.text.strip() or response.reason_phrase
            logger.error(f"Relay rejected transaction: {reason}")
            raise BroadcastError(reason, status_code=response.status_code)

        txid = response.text.strip()
        if not _is_txid(txid):
            raise NetworkError(f"Relay returned an invalid txid: {txid!r}")
        logger.info(f"Broadcast transaction: {txid}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
