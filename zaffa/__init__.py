"""Zaffa household shopping checklist backend."""

__version__ = "0.1.0"
