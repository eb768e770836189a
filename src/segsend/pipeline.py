"""
The send pipeline: keys -> UTXOs -> selection -> source tx -> build -> sign
-> finalize -> broadcast.

Each stage takes the previous stage's output as an explicit argument. Any
failure moves the pipeline to FAILED, which is terminal: there is no resume
and no retry. Nothing reaches the network before the broadcast stage, so a
failure earlier on needs no cleanup.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from segsend.backends.base import ChainBackend
from segsend.broadcaster import Broadcaster
from segsend.builder import build_transaction, verify_source_output
from segsend.config import SendSettings
from segsend.errors import AddressError, InvalidKeyError, SegsendError
from segsend.keys import KeyPair
from segsend.models import UTXO
from segsend.selection import select_utxo
from segsend.signing import finalize, sign_all_inputs
from segsend.transaction import SignedTransaction, UnsignedTransaction


class PipelineState(str, Enum):
    IDLE = "idle"
    KEYS_LOADED = "keys_loaded"
    UTXOS_FETCHED = "utxos_fetched"
    UTXO_SELECTED = "utxo_selected"
    SOURCE_TX_FETCHED = "source_tx_fetched"
    BUILT = "built"
    SIGNED = "signed"
    FINALIZED = "finalized"
    BROADCAST = "broadcast"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineFailure:
    """Where and why a run stopped."""

    stage: str
    reason: str
    last_state: PipelineState


@dataclass(frozen=True)
class PipelineResult:
    txid: str
    raw_hex: str
    fee: int
    change: int
    selected: UTXO
    broadcast: bool
    explorer_url: str | None = None


class SendPipeline:
    """
    One payment from a single P2WPKH key.

    An instance runs once. Inject ``keypair`` to bypass WIF loading (tests,
    hardware-held keys); otherwise the key is read from ``settings.wif``.
    """

    def __init__(
        self,
        settings: SendSettings,
        backend: ChainBackend,
        keypair: KeyPair | None = None,
    ):
        self.settings = settings
        self.backend = backend
        self._keypair = keypair
        self.state = PipelineState.IDLE
        self.history: list[PipelineState] = [PipelineState.IDLE]
        self.failure: PipelineFailure | None = None

    def _advance(self, state: PipelineState) -> None:
        logger.debug(f"Pipeline: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _fail(self, stage: str, error: Exception) -> None:
        if isinstance(error, SegsendError):
            reason = error.message
            if error.stage is None:
                error.stage = stage
        else:
            reason = str(error)

        self.failure = PipelineFailure(stage=stage, reason=reason, last_state=self.state)
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)
        logger.error(f"Send failed at stage '{stage}': {reason}")

    def load_keys(self) -> KeyPair:
        if not self.settings.destination_address:
            raise AddressError(
                "No destination address configured (set SEGSEND_DESTINATION_ADDRESS)"
            )
        if self._keypair is not None:
            if self._keypair.network != self.settings.network:
                raise InvalidKeyError(
                    f"Key is for {self._keypair.network.value}, "
                    f"settings are for {self.settings.network.value}"
                )
            return self._keypair
        if not self.settings.wif:
            raise InvalidKeyError("No wallet key configured (set SEGSEND_WIF)")
        return KeyPair.from_wif(self.settings.wif, self.settings.network)

    def build(self, keypair: KeyPair, utxo: UTXO) -> UnsignedTransaction:
        return build_transaction(
            utxo=utxo,
            destination_script=self.settings.destination_script,
            amount=self.settings.amount,
            fee=self.settings.fee,
            change_script=keypair.script_pubkey,
            dust_policy=self.settings.dust_policy,
            dust_threshold=self.settings.dust_threshold,
        )

    async def run(self, broadcast: bool = True) -> PipelineResult:
        """
        Execute every stage in order.

        Args:
            broadcast: When False, stop after finalizing and return the raw
                transaction without submitting it

        Raises:
            SegsendError: The first stage failure, with ``stage`` filled in
        """
        if self.state != PipelineState.IDLE:
            raise RuntimeError(f"Pipeline already ran (state: {self.state.value})")

        stage = "load_keys"
        try:
            keypair = self.load_keys()
            logger.info(f"Wallet address (p2wpkh): {keypair.address}")
            self._advance(PipelineState.KEYS_LOADED)

            stage = "fetch_utxos"
            utxos = await self.backend.get_utxos(keypair.address)
            self._advance(PipelineState.UTXOS_FETCHED)

            stage = "select_utxo"
            utxo = select_utxo(
                utxos, self.settings.min_utxo_value, self.settings.min_confirmations
            )
            logger.info(f"Selected UTXO {utxo.outpoint} ({utxo.value} sats)")
            self._advance(PipelineState.UTXO_SELECTED)

            stage = "fetch_source_tx"
            raw_source = await self.backend.get_raw_transaction(utxo.txid)
            verify_source_output(raw_source, utxo, keypair.script_pubkey)
            self._advance(PipelineState.SOURCE_TX_FETCHED)

            stage = "build"
            unsigned = self.build(keypair, utxo)
            logger.info(
                f"Built transaction: {len(unsigned.outputs)} output(s), fee {unsigned.fee} sats"
            )
            self._advance(PipelineState.BUILT)

            stage = "sign"
            partial = sign_all_inputs(unsigned, keypair)
            self._advance(PipelineState.SIGNED)

            stage = "finalize"
            signed = finalize(partial)
            self._advance(PipelineState.FINALIZED)

            txid = signed.txid
            explorer_url = None
            if broadcast:
                stage = "broadcast"
                result = await Broadcaster(self.backend, self.settings.explorer_url).broadcast(
                    signed
                )
                txid = result.txid
                explorer_url = result.explorer_url
                self._advance(PipelineState.BROADCAST)
            else:
                logger.info("Dry run: transaction not broadcast")

        except Exception as e:
            self._fail(stage, e)
            raise

        self._advance(PipelineState.DONE)
        return PipelineResult(
            txid=txid,
            raw_hex=signed.hex,
            fee=signed.fee,
            change=_change_value(signed, keypair),
            selected=utxo,
            broadcast=broadcast,
            explorer_url=explorer_url,
        )


def _change_value(signed: SignedTransaction, keypair: KeyPair) -> int:
    own_script = keypair.script_pubkey
    return sum(out.value for out in signed.outputs[1:] if out.script_pubkey == own_script)


async def send_payment(
    settings: SendSettings, backend: ChainBackend, broadcast: bool = True
) -> PipelineResult:
    """Run one pipeline with ``settings`` against ``backend``."""
    return await SendPipeline(settings, backend).run(broadcast=broadcast)
