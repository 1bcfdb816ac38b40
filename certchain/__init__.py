"""
certchain — tamper-evident certificate issuance anchored on a ledger.

A certificate's metadata is uploaded to content-addressed storage, the
keccak-256 of its locator is written into a ledger contract, and the
metadata is indexed locally so the on-chain record can be resolved back
into something a human can read.
"""

__version__ = "0.1.0"
