"""
Single-input coin selection.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from segsend.errors import InsufficientFundsError, NoFundsError
from segsend.models import UTXO


def select_utxo(
    utxos: Sequence[UTXO], minimum_value: int, min_confirmations: int = 0
) -> UTXO:
    """
    Select the first UTXO (in the given order) worth at least ``minimum_value``.

    This is first-fit on purpose: no attempt is made to minimise waste or
    inputs, and the order reported by the indexing service is kept.

    Args:
        utxos: Candidate outputs, in the order to consider them
        minimum_value: Amount to send plus fee, in satoshis
        min_confirmations: When >= 1, unconfirmed outputs are skipped

    Raises:
        NoFundsError: If ``utxos`` is empty
        InsufficientFundsError: If no candidate is large enough
    """
    if not utxos:
        raise NoFundsError("No UTXOs available")

    eligible = [u for u in utxos if min_confirmations <= 0 or u.confirmed]

    for utxo in eligible:
        if utxo.value >= minimum_value:
            logger.debug(f"Selected UTXO {utxo.outpoint} worth {utxo.value} sats")
            return utxo

    largest = max((u.value for u in eligible), default=0)
    raise InsufficientFundsError(
        f"No UTXO with sufficient balance found. Need at least {minimum_value} sats, "
        f"largest eligible UTXO has {largest} sats",
        required=minimum_value,
        available=largest,
    )
