"""
Transaction structures and segwit v0 wire serialization.

Serialization (BIP144):
    version | [marker 0x00 flag 0x01] | inputs | outputs | [witnesses] | locktime

The txid commits to the serialization without marker, flag and witnesses.
"""

from __future__ import annotations

import hashlib
import struct
from collections.abc import Sequence
from dataclasses import dataclass, field

from segsend.constants import DEFAULT_SEQUENCE, SEGWIT_FLAG, SEGWIT_MARKER, TX_LOCKTIME, TX_VERSION
from segsend.errors import TransactionParseError


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def encode_varint(value: int) -> bytes:
    """Encode integer as Bitcoin CompactSize."""
    if value < 0:
        raise ValueError("varint cannot be negative")
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", value)
    if value <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", value)
    return b"\xff" + struct.pack("<Q", value)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read a CompactSize at ``offset``. Returns (value, new_offset)."""
    first = _take(data, offset, 1)[0]
    offset += 1

    if first < 0xFD:
        return first, offset
    if first == 0xFD:
        return struct.unpack("<H", _take(data, offset, 2))[0], offset + 2
    if first == 0xFE:
        return struct.unpack("<I", _take(data, offset, 4))[0], offset + 4
    return struct.unpack("<Q", _take(data, offset, 8))[0], offset + 8


def _take(data: bytes, offset: int, length: int) -> bytes:
    if offset + length > len(data):
        raise TransactionParseError(
            f"Unexpected end of data: need {length} bytes at offset {offset}, have {len(data)}"
        )
    return data[offset : offset + length]


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is displayed big-endian, raw transactions carry it little-endian
    return bytes.fromhex(txid)[::-1] + struct.pack("<I", vout)


def serialize_input(
    txid: str, vout: int, script_sig: bytes = b"", sequence: int = DEFAULT_SEQUENCE
) -> bytes:
    return (
        serialize_outpoint(txid, vout)
        + encode_varint(len(script_sig))
        + script_sig
        + struct.pack("<I", sequence)
    )


@dataclass(frozen=True)
class TxInput:
    """
    Input spending a witness output.

    ``value`` and ``script_pubkey`` describe the output being spent; they are
    not serialized but are committed to by the BIP143 signature hash.
    """

    txid: str
    vout: int
    value: int
    script_pubkey: bytes
    sequence: int = DEFAULT_SEQUENCE

    @property
    def script_sig(self) -> bytes:
        # Native segwit inputs always carry an empty scriptSig
        return b""

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"


@dataclass(frozen=True)
class TxOutput:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return (
            struct.pack("<Q", self.value)
            + encode_varint(len(self.script_pubkey))
            + self.script_pubkey
        )


def serialize_output(out: TxOutput) -> bytes:
    return out.serialize()


def serialize_witness(stack: Sequence[bytes]) -> bytes:
    result = encode_varint(len(stack))
    for item in stack:
        result += encode_varint(len(item)) + item
    return result


def _serialize(
    version: int,
    inputs: Sequence[bytes],
    outputs: Sequence[TxOutput],
    locktime: int,
    witnesses: Sequence[Sequence[bytes]] | None = None,
) -> bytes:
    # BIP144: the extended format is only used when some input has witness data
    with_witness = witnesses is not None and any(len(w) > 0 for w in witnesses)

    result = struct.pack("<I", version)
    if with_witness:
        result += bytes([SEGWIT_MARKER, SEGWIT_FLAG])

    result += encode_varint(len(inputs))
    for raw_input in inputs:
        result += raw_input

    result += encode_varint(len(outputs))
    for out in outputs:
        result += serialize_output(out)

    if with_witness:
        for stack in witnesses or ():
            result += serialize_witness(stack)

    result += struct.pack("<I", locktime)
    return result


def _txid_from_legacy(legacy_bytes: bytes) -> str:
    return hash256(legacy_bytes)[::-1].hex()


@dataclass(frozen=True)
class UnsignedTransaction:
    """
    Transaction before signing.

    Invariant: sum(output values) + fee == sum(input values).
    """

    inputs: tuple[TxInput, ...]
    outputs: tuple[TxOutput, ...]
    fee: int
    version: int = TX_VERSION
    locktime: int = TX_LOCKTIME

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

        if not self.inputs:
            raise ValueError("Transaction needs at least one input")
        if not self.outputs:
            raise ValueError("Transaction needs at least one output")
        if any(out.value < 0 for out in self.outputs):
            raise ValueError("Output values must be non-negative")
        if self.fee < 0:
            raise ValueError("Fee must be non-negative")
        if self.output_value + self.fee != self.input_value:
            raise ValueError(
                f"Unbalanced transaction: outputs {self.output_value} + fee {self.fee} "
                f"!= inputs {self.input_value}"
            )

    @property
    def input_value(self) -> int:
        return sum(inp.value for inp in self.inputs)

    @property
    def output_value(self) -> int:
        return sum(out.value for out in self.outputs)

    def serialize(self) -> bytes:
        """Serialize without witnesses."""
        return serialize_transaction(self)

    @property
    def txid(self) -> str:
        # Witnesses do not affect the txid, so it is known before signing
        return _txid_from_legacy(self.serialize())


@dataclass(frozen=True)
class SignedTransaction:
    """Finalized transaction: one complete witness stack per input."""

    unsigned: UnsignedTransaction
    witnesses: tuple[tuple[bytes, ...], ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "witnesses", tuple(tuple(w) for w in self.witnesses))
        if len(self.witnesses) != len(self.unsigned.inputs):
            raise ValueError(
                f"Expected {len(self.unsigned.inputs)} witness stacks, got {len(self.witnesses)}"
            )

    @property
    def inputs(self) -> tuple[TxInput, ...]:
        return self.unsigned.inputs

    @property
    def outputs(self) -> tuple[TxOutput, ...]:
        return self.unsigned.outputs

    @property
    def fee(self) -> int:
        return self.unsigned.fee

    def serialize(self) -> bytes:
        return serialize_transaction(self.unsigned, self.witnesses)

    @property
    def hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        return self.unsigned.txid

    @property
    def wtxid(self) -> str:
        return hash256(self.serialize())[::-1].hex()

    @property
    def weight(self) -> int:
        base_size = len(self.unsigned.serialize())
        total_size = len(self.serialize())
        return base_size * 3 + total_size

    @property
    def vsize(self) -> int:
        return (self.weight + 3) // 4


def serialize_transaction(
    tx: UnsignedTransaction, witnesses: Sequence[Sequence[bytes]] | None = None
) -> bytes:
    """Serialize ``tx``, in segwit format when ``witnesses`` carries any data."""
    if witnesses is not None and len(witnesses) != len(tx.inputs):
        raise ValueError("One witness stack per input is required")
    raw_inputs = [
        serialize_input(inp.txid, inp.vout, inp.script_sig, inp.sequence) for inp in tx.inputs
    ]
    return _serialize(tx.version, raw_inputs, tx.outputs, tx.locktime, witnesses)


@dataclass
class ParsedInput:
    txid: str
    vout: int
    script_sig: bytes
    sequence: int


@dataclass
class ParsedTransaction:
    version: int
    inputs: list[ParsedInput]
    outputs: list[TxOutput]
    locktime: int
    witnesses: list[list[bytes]] = field(default_factory=list)
    has_witness: bool = False

    def serialize(self, include_witness: bool = True) -> bytes:
        raw_inputs = [
            serialize_input(inp.txid, inp.vout, inp.script_sig, inp.sequence)
            for inp in self.inputs
        ]
        witnesses = self.witnesses if include_witness and self.has_witness else None
        return _serialize(self.version, raw_inputs, self.outputs, self.locktime, witnesses)

    @property
    def txid(self) -> str:
        return _txid_from_legacy(self.serialize(include_witness=False))


def deserialize_transaction(tx_bytes: bytes) -> ParsedTransaction:
    """Parse a raw transaction in legacy or segwit format."""
    offset = 0
    version = struct.unpack("<I", _take(tx_bytes, offset, 4))[0]
    offset += 4

    has_witness = False
    marker = _take(tx_bytes, offset, 2)
    if marker[0] == SEGWIT_MARKER and marker[1] == SEGWIT_FLAG:
        has_witness = True
        offset += 2

    input_count, offset = read_varint(tx_bytes, offset)
    inputs: list[ParsedInput] = []
    for _ in range(input_count):
        txid = _take(tx_bytes, offset, 32)[::-1].hex()
        offset += 32
        vout = struct.unpack("<I", _take(tx_bytes, offset, 4))[0]
        offset += 4
        script_len, offset = read_varint(tx_bytes, offset)
        script_sig = _take(tx_bytes, offset, script_len)
        offset += script_len
        sequence = struct.unpack("<I", _take(tx_bytes, offset, 4))[0]
        offset += 4
        inputs.append(ParsedInput(txid, vout, script_sig, sequence))

    output_count, offset = read_varint(tx_bytes, offset)
    outputs: list[TxOutput] = []
    for _ in range(output_count):
        value = struct.unpack("<Q", _take(tx_bytes, offset, 8))[0]
        offset += 8
        script_len, offset = read_varint(tx_bytes, offset)
        script = _take(tx_bytes, offset, script_len)
        offset += script_len
        outputs.append(TxOutput(value, script))

    witnesses: list[list[bytes]] = []
    if has_witness:
        for _ in range(input_count):
            stack_count, offset = read_varint(tx_bytes, offset)
            stack: list[bytes] = []
            for _ in range(stack_count):
                item_len, offset = read_varint(tx_bytes, offset)
                stack.append(_take(tx_bytes, offset, item_len))
                offset += item_len
            witnesses.append(stack)

    locktime = struct.unpack("<I", _take(tx_bytes, offset, 4))[0]
    offset += 4

    if offset != len(tx_bytes):
        raise TransactionParseError(f"{len(tx_bytes) - offset} trailing bytes after locktime")

    return ParsedTransaction(
        version=version,
        inputs=inputs,
        outputs=outputs,
        locktime=locktime,
        witnesses=witnesses,
        has_witness=has_witness,
    )


def compute_txid(tx_bytes: bytes) -> str:
    """Txid (display byte order) of a raw transaction in either format."""
    return deserialize_transaction(tx_bytes).txid
