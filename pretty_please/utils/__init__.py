"""Utility modules for pretty-please."""
