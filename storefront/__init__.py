"""Storefront core: cart, stock ledger and order pipeline."""

__version__ = "0.1.0"
