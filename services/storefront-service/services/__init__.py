"""Storefront domain services."""
