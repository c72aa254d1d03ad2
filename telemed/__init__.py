"""Telemedicine subscription entitlement service."""

__version__ = "1.0.0"
