"""Inbound Shopify webhooks.

Receives Shopify webhooks; each is signature-verified, deduplicated and recorded.
"""
