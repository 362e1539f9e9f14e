"""Simulated RPC network, Raft consensus, message marshalling, actor refs and key-value wire types."""

__version__ = "0.1.0"

__all__ = [
    "network",
    "raft",
    "marshalling",
    "refs",
    "kvcommon",
    "actor_context",
]