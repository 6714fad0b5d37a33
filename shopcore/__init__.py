"""Storefront domain library: catalog, cart, orders and payments."""
