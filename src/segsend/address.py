"""
Bitcoin address and locking script utilities.

Segwit addresses use the ``bech32`` package (BIP173/BIP350), legacy
addresses use ``base58`` check encoding.
"""

from __future__ import annotations

import hashlib

import base58
import bech32

from segsend.errors import AddressError
from segsend.models import NetworkType

# Base58 version bytes: (P2PKH, P2SH)
_MAINNET_BASE58_VERSIONS = (0x00, 0x05)
_TESTNET_BASE58_VERSIONS = (0x6F, 0xC4)


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def pubkey_to_p2wpkh_script(pubkey_bytes: bytes) -> bytes:
    """Create P2WPKH scriptPubKey (OP_0 <20-byte-hash>)"""
    if len(pubkey_bytes) != 33:
        raise AddressError(f"Invalid compressed pubkey length: {len(pubkey_bytes)}")
    return bytes([0x00, 0x14]) + hash160(pubkey_bytes)


def pubkey_to_p2wpkh_address(
    pubkey_bytes: bytes, network: NetworkType = NetworkType.MAINNET
) -> str:
    """
    Convert compressed public key to P2WPKH (native segwit v0) address.
    BIP173 bech32 encoding.
    """
    script = pubkey_to_p2wpkh_script(pubkey_bytes)
    return scriptpubkey_to_address(script, network)


def _detect_hrp(address: str) -> str:
    lowered = address.lower()
    for hrp in ("bcrt", "bc", "tb"):
        if lowered.startswith(hrp + "1"):
            return hrp
    return ""


def address_to_scriptpubkey(address: str, network: NetworkType | None = None) -> bytes:
    """
    Convert a Bitcoin address to scriptPubKey.

    Supports:
    - P2WPKH / P2WSH (witness v0, bech32)
    - P2TR (witness v1, bech32m)
    - P2PKH / P2SH (base58check)

    When ``network`` is given the address must belong to it.
    """
    hrp = _detect_hrp(address)
    if hrp:
        if network is not None and hrp != network.hrp:
            raise AddressError(f"Address {address} is not a {network.value} address")

        witver, witprog = bech32.decode(hrp, address)
        if witver is None or witprog is None:
            raise AddressError(f"Invalid bech32 address: {address}")

        program = bytes(witprog)
        if witver == 0 and len(program) in (20, 32):
            # OP_0 <20-byte-pubkeyhash> or OP_0 <32-byte-scripthash>
            return bytes([0x00, len(program)]) + program
        if witver == 1 and len(program) == 32:
            # OP_1 <32-byte-output-key>
            return bytes([0x51, 0x20]) + program
        raise AddressError(f"Unsupported witness program in {address}")

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise AddressError(f"Invalid address: {address}") from e

    if len(decoded) != 21:
        raise AddressError(f"Invalid base58 payload length in {address}")

    version, payload = decoded[0], decoded[1:]
    if network is not None:
        allowed = (
            _MAINNET_BASE58_VERSIONS if network == NetworkType.MAINNET else _TESTNET_BASE58_VERSIONS
        )
        if version not in allowed:
            raise AddressError(f"Address {address} is not a {network.value} address")

    if version in (0x00, 0x6F):
        # OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version in (0x05, 0xC4):
        # OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise AddressError(f"Unknown address version: {version}")


def scriptpubkey_to_address(scriptpubkey: bytes, network: NetworkType = NetworkType.MAINNET) -> str:
    """Convert a segwit scriptPubKey to its bech32 address."""
    if len(scriptpubkey) in (22, 34) and scriptpubkey[0] == 0x00:
        witver = 0
    elif len(scriptpubkey) == 34 and scriptpubkey[0] == 0x51:
        witver = 1
    else:
        raise AddressError(f"Unsupported scriptPubKey: {scriptpubkey.hex()}")

    if scriptpubkey[1] != len(scriptpubkey) - 2:
        raise AddressError(f"Malformed witness program push: {scriptpubkey.hex()}")

    result = bech32.encode(network.hrp, witver, scriptpubkey[2:])
    if result is None:
        raise AddressError(f"Failed to encode address for {scriptpubkey.hex()}")
    return result
