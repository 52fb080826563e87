"""Connectivity oracles."""

from fieldsync.network.connectivity import ConnectivityOracle, HttpConnectivity, StaticConnectivity

__all__ = ["ConnectivityOracle", "HttpConnectivity", "StaticConnectivity"]
