"""
Bitcoin protocol and policy constants used when building transactions.

P2WPKH_DUST_LIMIT follows Bitcoin Core's default dust relay fee (3 sat/vB)
for native segwit v0 keyhash outputs.
"""

from __future__ import annotations

# Smallest relayable P2WPKH output
P2WPKH_DUST_LIMIT = 294  # satoshis

# Transaction defaults
TX_VERSION = 2
TX_LOCKTIME = 0
DEFAULT_SEQUENCE = 0xFFFFFFFF

# Sighash flags
SIGHASH_ALL = 0x01

# Segwit serialization marker and flag
SEGWIT_MARKER = 0x00
SEGWIT_FLAG = 0x01

# Payment defaults (testnet, fixed amount and fee)
DEFAULT_AMOUNT = 1000  # satoshis
DEFAULT_FEE = 200  # satoshis
DEFAULT_API_URL = "https://mempool.space/testnet/api"
DEFAULT_EXPLORER_URL = "https://mempool.space/testnet"

# Timeout for gateway HTTP calls (seconds)
DEFAULT_REQUEST_TIMEOUT = 30.0
