"""Utility modules for cairn."""
