"""
segsend - single-input P2WPKH payments

Selects a UTXO, builds and signs a segwit v0 transaction and relays it
through an Esplora-compatible indexing service.
"""

__version__ = "0.1.0"

from segsend.backends import ChainBackend, MempoolBackend
from segsend.broadcaster import Broadcaster
from segsend.builder import DustPolicy, build_transaction, verify_source_output
from segsend.config import SendSettings, get_settings
from segsend.errors import (
    AddressError,
    BroadcastError,
    FinalizationError,
    InsufficientFundsError,
    InvalidKeyError,
    NetworkError,
    NoFundsError,
    SegsendError,
    SourceTransactionError,
    TransactionParseError,
    TransactionSigningError,
)
from segsend.keys import KeyPair
from segsend.models import UTXO, BroadcastResult, NetworkType, UTXOStatus
from segsend.pipeline import (
    PipelineFailure,
    PipelineResult,
    PipelineState,
    SendPipeline,
    send_payment,
)
from segsend.selection import select_utxo
from segsend.signing import PartiallySignedTransaction, finalize, sign_all_inputs, sign_input
from segsend.transaction import (
    SignedTransaction,
    TxInput,
    TxOutput,
    UnsignedTransaction,
    deserialize_transaction,
)

__all__ = [
    "AddressError",
    "Broadcaster",
    "BroadcastError",
    "BroadcastResult",
    "build_transaction",
    "ChainBackend",
    "deserialize_transaction",
    "DustPolicy",
    "FinalizationError",
    "finalize",
    "get_settings",
    "InsufficientFundsError",
    "InvalidKeyError",
    "KeyPair",
    "MempoolBackend",
    "NetworkError",
    "NetworkType",
    "NoFundsError",
    "PartiallySignedTransaction",
    "PipelineFailure",
    "PipelineResult",
    "PipelineState",
    "SegsendError",
    "select_utxo",
    "send_payment",
    "SendPipeline",
    "SendSettings",
    "sign_all_inputs",
    "sign_input",
    "SignedTransaction",
    "SourceTransactionError",
    "TransactionParseError",
    "TransactionSigningError",
    "TxInput",
    "TxOutput",
    "UnsignedTransaction",
    "UTXO",
    "UTXOStatus",
    "verify_source_output",
]
