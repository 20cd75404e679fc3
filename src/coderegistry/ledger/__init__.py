"""Transactional record store backing the registry.

Implements the substrate contract: declared read/write sets, serialized
conflicting writers, atomic multi-record commits.
"""

from coderegistry.ledger.store import Ledger, Transaction

__all__ = [
    "Ledger",
    "Transaction",
]
