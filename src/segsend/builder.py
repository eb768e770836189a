"""
Builds the unsigned payment transaction from a selected UTXO.

The transaction structure:
- Input: the selected UTXO, carrying the spent output's value and script
- Output 0: destination, ``amount``
- Output 1: change back to the sender, only when change is positive
"""

from __future__ import annotations

from enum import Enum

from loguru import logger

from segsend.constants import P2WPKH_DUST_LIMIT
from segsend.errors import InsufficientFundsError, SourceTransactionError, TransactionParseError
from segsend.models import UTXO
from segsend.transaction import (
    TxInput,
    TxOutput,
    UnsignedTransaction,
    deserialize_transaction,
)


class DustPolicy(str, Enum):
    """What to do with change that is positive but below the dust threshold."""

    KEEP = "keep"  # emit the change output anyway
    ABSORB = "absorb"  # drop the output and let the miner take it as extra fee


def build_transaction(
    utxo: UTXO,
    destination_script: bytes,
    amount: int,
    fee: int,
    change_script: bytes,
    dust_policy: DustPolicy = DustPolicy.KEEP,
    dust_threshold: int = P2WPKH_DUST_LIMIT,
) -> UnsignedTransaction:
    """
    Build a single-input payment.

    Args:
        utxo: Output being spent (must be locked to ``change_script``)
        destination_script: Locking script of the recipient
        amount: Satoshis to send
        fee: Fixed fee in satoshis
        change_script: Sender's own locking script, used for the input and change
        dust_policy: Handling of positive change below ``dust_threshold``
        dust_threshold: Smallest change value considered spendable

    Returns:
        UnsignedTransaction balancing inputs against outputs plus fee

    Raises:
        InsufficientFundsError: If the UTXO cannot cover amount + fee
    """
    if amount <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")
    if fee < 0:
        raise ValueError(f"Fee must be non-negative, got {fee}")

    change = utxo.value - amount - fee
    if change < 0:
        raise InsufficientFundsError(
            f"Input amount {utxo.value} is not enough to cover {amount} plus fee {fee}",
            required=amount + fee,
            available=utxo.value,
        )

    tx_input = TxInput(
        txid=utxo.txid,
        vout=utxo.vout,
        value=utxo.value,
        script_pubkey=change_script,
    )
    outputs = [TxOutput(value=amount, script_pubkey=destination_script)]
    logger.debug(f"Output added: {amount} sats to {destination_script.hex()}")

    effective_fee = fee
    if change > 0:
        if dust_policy == DustPolicy.ABSORB and change < dust_threshold:
            logger.warning(
                f"Change of {change} sats is below dust threshold {dust_threshold}, "
                "adding it to the fee"
            )
            effective_fee += change
        else:
            outputs.append(TxOutput(value=change, script_pubkey=change_script))
            logger.debug(f"Change output added: {change} sats")

    return UnsignedTransaction(inputs=(tx_input,), outputs=tuple(outputs), fee=effective_fee)


def verify_source_output(raw_tx: bytes, utxo: UTXO, expected_script: bytes) -> TxOutput:
    """
    Check the fetched source transaction really funds ``utxo``.

    The raw transaction must hash to the UTXO's txid and its output at
    ``utxo.vout`` must carry the reported value and the expected script.

    Returns:
        The verified output being spent
    """
    try:
        parsed = deserialize_transaction(raw_tx)
    except TransactionParseError as e:
        raise SourceTransactionError(f"Could not parse source transaction {utxo.txid}: {e}") from e

    if parsed.txid != utxo.txid:
        raise SourceTransactionError(
            f"Source transaction hashes to {parsed.txid}, expected {utxo.txid}"
        )

    if utxo.vout >= len(parsed.outputs):
        raise SourceTransactionError(
            f"Source transaction {utxo.txid} has no output {utxo.vout} "
            f"({len(parsed.outputs)} outputs)"
        )

    output = parsed.outputs[utxo.vout]
    if output.value != utxo.value:
        raise SourceTransactionError(
            f"Output {utxo.outpoint} is worth {output.value} sats, indexer reported {utxo.value}"
        )
    if output.script_pubkey != expected_script:
        raise SourceTransactionError(
            f"Output {utxo.outpoint} is locked to {output.script_pubkey.hex()}, "
            f"not to {expected_script.hex()}"
        )

    return output
