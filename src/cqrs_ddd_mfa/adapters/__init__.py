"""Adapters implementing the MFA ports."""
