"""Storefront HTTP application."""
