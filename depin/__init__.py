"""
DePIN Node Rights Simulator - Core Package

In-process simulation of a decentralized physical infrastructure network:
node registry, participation ledger, tokenized node rights with performance
scoring and slashing, DPN reward token, SQLite event index and REST API.
"""

__version__ = "0.1.0"

__all__ = [
    "access",
    "auth",
    "errors",
    "events",
    "host",
    "indexer",
    "participation",
    "registry",
    "rights",
    "server",
    "storage",
    "token",
]
