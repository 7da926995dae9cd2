"""Shared-cache infrastructure."""
