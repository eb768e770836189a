"""
Key material for a single P2WPKH key.
"""

from __future__ import annotations

import base58
from coincurve import PrivateKey, PublicKey

from segsend.address import pubkey_to_p2wpkh_address, pubkey_to_p2wpkh_script
from segsend.errors import InvalidKeyError
from segsend.models import NetworkType

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)


class KeyPair:
    """
    A secp256k1 keypair bound to a network.

    The private scalar is held by a coincurve PrivateKey; the public key is
    always used in compressed form since P2WPKH only commits to compressed keys.
    """

    def __init__(self, private_key: PrivateKey, network: NetworkType = NetworkType.TESTNET):
        self._private_key = private_key
        self._public_key = private_key.public_key
        self._network = NetworkType(network)

    @classmethod
    def from_secret(
        cls, secret: bytes, network: NetworkType = NetworkType.TESTNET
    ) -> KeyPair:
        """Create a keypair from a raw 32-byte private scalar."""
        if len(secret) != 32:
            raise InvalidKeyError(f"Private key must be 32 bytes, got {len(secret)}")
        scalar = int.from_bytes(secret, "big")
        if not 0 < scalar < SECP256K1_N:
            raise InvalidKeyError("Private key is not a valid secp256k1 scalar")
        return cls(PrivateKey(secret), network)

    @classmethod
    def from_wif(cls, wif: str, network: NetworkType = NetworkType.TESTNET) -> KeyPair:
        """
        Decode a WIF private key.

        Format: base58check(version || 32-byte key || 0x01), where the trailing
        0x01 marks a compressed public key. Uncompressed WIFs are rejected.
        """
        network = NetworkType(network)
        try:
            payload = base58.b58decode_check(wif.strip())
        except ValueError as e:
            raise InvalidKeyError(f"Invalid WIF encoding: {e}") from e

        if len(payload) == 33:
            raise InvalidKeyError("Uncompressed WIF keys cannot be used for P2WPKH")
        if len(payload) != 34 or payload[-1] != 0x01:
            raise InvalidKeyError(f"Invalid WIF payload length: {len(payload)}")
        if payload[0] != network.wif_prefix:
            raise InvalidKeyError(
                f"WIF version 0x{payload[0]:02x} does not match network {network.value}"
            )

        return cls.from_secret(payload[1:33], network)

    @property
    def private_key(self) -> PrivateKey:
        return self._private_key

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    @property
    def network(self) -> NetworkType:
        return self._network

    def public_key_bytes(self) -> bytes:
        return self._public_key.format(compressed=True)

    def public_key_hex(self) -> str:
        return self.public_key_bytes().hex()

    def to_wif(self) -> str:
        payload = bytes([self._network.wif_prefix]) + self._private_key.secret + b"\x01"
        return base58.b58encode_check(payload).decode("ascii")

    @property
    def script_pubkey(self) -> bytes:
        """P2WPKH locking script for this key."""
        return pubkey_to_p2wpkh_script(self.public_key_bytes())

    @property
    def address(self) -> str:
        """P2WPKH address, recomputed on every access."""
        return pubkey_to_p2wpkh_address(self.public_key_bytes(), self._network)

    def __repr__(self) -> str:
        return f"KeyPair(pubkey={self.public_key_hex()}, network={self._network.value})"
