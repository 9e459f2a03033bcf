"""Storefront cart & pricing engine."""

__version__ = "1.0.0"
