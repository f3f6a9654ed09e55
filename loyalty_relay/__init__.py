"""Shopify -> Loyalteez webhook relay."""

__version__ = "1.0.0"
