"""
Tests for payment construction and source transaction checks.
"""

import pytest

from segsend.builder import DustPolicy, build_transaction, verify_source_output
from segsend.errors import InsufficientFundsError, SourceTransactionError
from segsend.models import UTXO

CHANGE_SCRIPT = bytes.fromhex("0014" + "cc" * 20)
DEST_SCRIPT = bytes.fromhex("0014" + "dd" * 20)


def _build(value: int, amount: int = 1000, fee: int = 200, **kwargs):
    utxo = UTXO(txid="ee" * 32, vout=2, value=value)
    return build_transaction(
        utxo=utxo,
        destination_script=DEST_SCRIPT,
        amount=amount,
        fee=fee,
        change_script=CHANGE_SCRIPT,
        **kwargs,
    )


class TestBuildTransaction:
    def test_with_change(self):
        tx = _build(5000)
        assert len(tx.inputs) == 1
        assert tx.inputs[0].txid == "ee" * 32
        assert tx.inputs[0].vout == 2
        assert tx.inputs[0].value == 5000
        assert tx.inputs[0].script_pubkey == CHANGE_SCRIPT

        assert [(o.value, o.script_pubkey) for o in tx.outputs] == [
            (1000, DEST_SCRIPT),
            (3800, CHANGE_SCRIPT),
        ]
        assert tx.fee == 200

    def test_exact_amount_has_no_change(self):
        tx = _build(1200)
        assert len(tx.outputs) == 1
        assert tx.outputs[0].value == 1000
        assert tx.fee == 200

    def test_insufficient(self):
        with pytest.raises(InsufficientFundsError) as exc_info:
            _build(1000)
        assert exc_info.value.required == 1200
        assert exc_info.value.available == 1000

    def test_dust_change_kept_by_default(self):
        tx = _build(1201)
        assert [o.value for o in tx.outputs] == [1000, 1]
        assert tx.fee == 200

    def test_dust_change_absorbed(self):
        tx = _build(1300, dust_policy=DustPolicy.ABSORB)
        assert len(tx.outputs) == 1
        assert tx.fee == 300
        assert tx.output_value + tx.fee == tx.input_value

    def test_absorb_keeps_change_above_threshold(self):
        tx = _build(1200 + 294, dust_policy=DustPolicy.ABSORB)
        assert [o.value for o in tx.outputs] == [1000, 294]

    def test_custom_dust_threshold(self):
        tx = _build(2000, dust_policy=DustPolicy.ABSORB, dust_threshold=1000)
        assert len(tx.outputs) == 1
        assert tx.fee == 1000

    def test_zero_fee_allowed(self):
        tx = _build(1000, fee=0)
        assert tx.fee == 0
        assert len(tx.outputs) == 1

    @pytest.mark.parametrize("amount,fee", [(0, 200), (-5, 200), (1000, -1)])
    def test_invalid_amounts(self, amount, fee):
        with pytest.raises(ValueError):
            _build(5000, amount=amount, fee=fee)

    def test_txid_stable_across_builds(self):
        assert _build(5000).txid == _build(5000).txid


class TestVerifySourceOutput:
    def test_valid(self, keypair, funded_utxo):
        utxo, raw = funded_utxo(keypair, 5000, vout=1)
        out = verify_source_output(raw, utxo, keypair.script_pubkey)
        assert out.value == 5000
        assert out.script_pubkey == keypair.script_pubkey

    def test_txid_mismatch(self, keypair, funded_utxo):
        utxo, raw = funded_utxo(keypair, 5000)
        wrong = utxo.model_copy(update={"txid": "00" * 32})
        with pytest.raises(SourceTransactionError, match="hashes to"):
            verify_source_output(raw, wrong, keypair.script_pubkey)

    def test_missing_vout(self, keypair, funded_utxo):
        utxo, raw = funded_utxo(keypair, 5000)
        wrong = utxo.model_copy(update={"vout": 4})
        with pytest.raises(SourceTransactionError, match="has no output"):
            verify_source_output(raw, wrong, keypair.script_pubkey)

    def test_value_mismatch(self, keypair, funded_utxo):
        utxo, raw = funded_utxo(keypair, 5000)
        wrong = utxo.model_copy(update={"value": 6000})
        with pytest.raises(SourceTransactionError, match="indexer reported"):
            verify_source_output(raw, wrong, keypair.script_pubkey)

    def test_script_mismatch(self, keypair, other_keypair, funded_utxo):
        utxo, raw = funded_utxo(keypair, 5000)
        with pytest.raises(SourceTransactionError, match="locked to"):
            verify_source_output(raw, utxo, other_keypair.script_pubkey)

    def test_unparseable(self, keypair, funded_utxo):
        utxo, raw = funded_utxo(keypair, 5000)
        with pytest.raises(SourceTransactionError, match="Could not parse"):
            verify_source_output(raw[:-3], utxo, keypair.script_pubkey)
