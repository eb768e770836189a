"""
Chain data gateway implementations.

Available backends:
- MempoolBackend: mempool.space / Esplora REST API (no node required)
"""

from segsend.backends.base import ChainBackend
from segsend.backends.mempool import MempoolBackend

__all__ = [
    "ChainBackend",
    "MempoolBackend",
]
