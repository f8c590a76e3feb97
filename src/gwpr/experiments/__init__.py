"""Runnable workflow stages."""
