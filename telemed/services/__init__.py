"""Entitlement services."""
