"""Shopgate: Shopify gateway for the merchandise operations dashboard."""

__version__ = "0.1.0"
