"""
BIP143 signing and finalization for P2WPKH inputs.

Signing produces a PartiallySignedTransaction (the unsigned transaction plus
the witness stacks collected so far). ``finalize`` checks every input carries a
complete witness whose signature verifies, and only then yields a
SignedTransaction that can be serialized and broadcast.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from coincurve import PublicKey
from loguru import logger

from segsend.address import hash160, pubkey_to_p2wpkh_script
from segsend.constants import SIGHASH_ALL
from segsend.errors import FinalizationError, TransactionSigningError
from segsend.keys import KeyPair
from segsend.transaction import (
    SignedTransaction,
    UnsignedTransaction,
    encode_varint,
    hash256,
)


@dataclass(frozen=True)
class PartiallySignedTransaction:
    """Intermediate signing state: witnesses keyed by input index."""

    unsigned: UnsignedTransaction
    witnesses: Mapping[int, tuple[bytes, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "witnesses", MappingProxyType(dict(self.witnesses)))

    def with_witness(self, input_index: int, stack: list[bytes]) -> PartiallySignedTransaction:
        witnesses = dict(self.witnesses)
        witnesses[input_index] = tuple(stack)
        return PartiallySignedTransaction(self.unsigned, witnesses)

    def missing_inputs(self) -> list[int]:
        return [i for i in range(len(self.unsigned.inputs)) if not self.witnesses.get(i)]

    @property
    def is_complete(self) -> bool:
        return not self.missing_inputs()


def compute_sighash_segwit(
    tx: UnsignedTransaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP143 signature hash for a witness v0 input (SIGHASH_ALL only)."""
    if not 0 <= input_index < len(tx.inputs):
        raise TransactionSigningError(f"Input index {input_index} out of range")
    if sighash_type != SIGHASH_ALL:
        raise TransactionSigningError(f"Unsupported sighash type: {sighash_type}")

    hash_prevouts = hash256(
        b"".join(
            bytes.fromhex(inp.txid)[::-1] + inp.vout.to_bytes(4, "little") for inp in tx.inputs
        )
    )
    hash_sequence = hash256(b"".join(inp.sequence.to_bytes(4, "little") for inp in tx.inputs))
    hash_outputs = hash256(b"".join(out.serialize() for out in tx.outputs))

    target_input = tx.inputs[input_index]

    preimage = (
        tx.version.to_bytes(4, "little")
        + hash_prevouts
        + hash_sequence
        + bytes.fromhex(target_input.txid)[::-1]
        + target_input.vout.to_bytes(4, "little")
        + encode_varint(len(script_code))
        + script_code
        + value.to_bytes(8, "little")
        + target_input.sequence.to_bytes(4, "little")
        + hash_outputs
        + tx.locktime.to_bytes(4, "little")
        + sighash_type.to_bytes(4, "little")
    )

    return hash256(preimage)


def create_p2wpkh_script_code(pubkey_bytes: bytes) -> bytes:
    """Create the scriptCode for P2WPKH signing (BIP 143).

    For P2WPKH, the scriptCode is the P2PKH script:
    OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG

    Returns 25 bytes (without length prefix - the preimage serialization adds that).
    """
    return b"\x76\xa9\x14" + hash160(pubkey_bytes) + b"\x88\xac"


def create_witness_stack(signature: bytes, pubkey_bytes: bytes) -> list[bytes]:
    return [signature, pubkey_bytes]


def sign_input(
    tx: UnsignedTransaction | PartiallySignedTransaction,
    keypair: KeyPair,
    input_index: int,
    sighash_type: int = SIGHASH_ALL,
) -> PartiallySignedTransaction:
    """Sign one P2WPKH input and attach ``[signature, pubkey]`` as its witness.

    Args:
        tx: Unsigned transaction, or the state returned by a previous sign_input
        keypair: Key controlling the output spent by this input
        input_index: Index of the input to sign
        sighash_type: Sighash type (only SIGHASH_ALL)

    Returns:
        A new PartiallySignedTransaction; ``tx`` is left untouched
    """
    state = tx if isinstance(tx, PartiallySignedTransaction) else PartiallySignedTransaction(tx)
    unsigned = state.unsigned

    if not 0 <= input_index < len(unsigned.inputs):
        raise TransactionSigningError(f"Input index {input_index} out of range")

    target = unsigned.inputs[input_index]
    pubkey = keypair.public_key_bytes()
    if target.script_pubkey != keypair.script_pubkey:
        raise TransactionSigningError(
            f"Input {input_index} ({target.outpoint}) is not locked to this key"
        )

    script_code = create_p2wpkh_script_code(pubkey)
    sighash = compute_sighash_segwit(unsigned, input_index, script_code, target.value, sighash_type)

    # sighash is already SHA256d, so coincurve must not hash again
    signature = keypair.private_key.sign(sighash, hasher=None) + bytes([sighash_type])
    logger.debug(f"Signed input {input_index} ({target.outpoint})")

    return state.with_witness(input_index, create_witness_stack(signature, pubkey))


def sign_all_inputs(tx: UnsignedTransaction, keypair: KeyPair) -> PartiallySignedTransaction:
    state = PartiallySignedTransaction(tx)
    for index in range(len(tx.inputs)):
        state = sign_input(state, keypair, index)
    return state


def verify_input_witness(
    tx: UnsignedTransaction, input_index: int, stack: tuple[bytes, ...]
) -> bool:
    """Check a P2WPKH witness ``[sig, pubkey]`` against the input's committed script and value."""
    if len(stack) != 2:
        return False

    signature, pubkey = stack
    if len(signature) < 9 or len(pubkey) != 33:
        return False

    target = tx.inputs[input_index]
    try:
        if pubkey_to_p2wpkh_script(pubkey) != target.script_pubkey:
            return False
        sighash = compute_sighash_segwit(
            tx,
            input_index,
            create_p2wpkh_script_code(pubkey),
            target.value,
            signature[-1],
        )
        return PublicKey(pubkey).verify(signature[:-1], sighash, hasher=None)
    except (TransactionSigningError, ValueError, TypeError):
        return False


def finalize(state: PartiallySignedTransaction | SignedTransaction) -> SignedTransaction:
    """
    Turn a fully signed state into a broadcastable transaction.

    Finalizing an already finalized transaction returns it unchanged.
    """
    if isinstance(state, SignedTransaction):
        return state

    missing = state.missing_inputs()
    if missing:
        raise FinalizationError(f"Inputs without witness: {missing}")

    stacks: list[tuple[bytes, ...]] = []
    for index in range(len(state.unsigned.inputs)):
        stack = state.witnesses[index]
        if not verify_input_witness(state.unsigned, index, stack):
            raise FinalizationError(f"Input {index} has an invalid or incomplete witness")
        stacks.append(stack)

    signed = SignedTransaction(state.unsigned, tuple(stacks))
    logger.debug(f"Finalized {len(stacks)} input(s), txid {signed.txid}")
    return signed
