"""fieldsync: offline-first event tracking with opportunistic server sync."""

__version__ = "0.1.0"
