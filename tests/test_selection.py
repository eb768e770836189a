"""
Tests for first-fit UTXO selection.
"""

import pytest

from segsend.errors import InsufficientFundsError, NoFundsError
from segsend.models import UTXO, UTXOStatus
from segsend.selection import select_utxo


def _utxo(n: int, value: int, confirmed: bool = True) -> UTXO:
    return UTXO(txid=f"{n:064x}", vout=0, value=value, status=UTXOStatus(confirmed=confirmed))


def test_picks_first_sufficient_in_order():
    utxos = [_utxo(1, 500), _utxo(2, 1500), _utxo(3, 9000)]
    assert select_utxo(utxos, 1200) == utxos[1]


def test_exact_match_is_sufficient():
    utxos = [_utxo(1, 1200)]
    assert select_utxo(utxos, 1200) == utxos[0]


def test_not_best_fit():
    # first-fit keeps the larger, earlier output even if a tighter one exists
    utxos = [_utxo(1, 50_000), _utxo(2, 1200)]
    assert select_utxo(utxos, 1200).value == 50_000


def test_empty_list():
    with pytest.raises(NoFundsError):
        select_utxo([], 1200)


def test_all_too_small():
    with pytest.raises(InsufficientFundsError) as exc_info:
        select_utxo([_utxo(1, 300), _utxo(2, 1100)], 1200)
    assert exc_info.value.required == 1200
    assert exc_info.value.available == 1100


class TestMinConfirmations:
    def test_unconfirmed_allowed_by_default(self):
        utxos = [_utxo(1, 5000, confirmed=False)]
        assert select_utxo(utxos, 1200) == utxos[0]

    def test_unconfirmed_skipped(self):
        utxos = [_utxo(1, 5000, confirmed=False), _utxo(2, 2000)]
        assert select_utxo(utxos, 1200, min_confirmations=1) == utxos[1]

    def test_only_unconfirmed(self):
        with pytest.raises(InsufficientFundsError) as exc_info:
            select_utxo([_utxo(1, 5000, confirmed=False)], 1200, min_confirmations=1)
        assert exc_info.value.available == 0
