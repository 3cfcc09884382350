"""HTTP API for the Tixer tickets service."""
