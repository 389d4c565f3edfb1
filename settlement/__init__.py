"""Ordinal marketplace settlement: PSBT verification and transaction relay."""

__version__ = "1.0.0"
