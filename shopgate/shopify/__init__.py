"""Shopify Admin API gateway: credentials, cache, client, order linking."""
