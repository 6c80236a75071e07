"""Simulated RPC network, protobuf-compatible message codec and linearizability checker."""

__version__ = "0.1.0"