"""Tixer tickets service: ticket persistence with a transactional counter."""

__version__ = "1.0.0"
