"""Endpoint modules of the Crownstone cloud REST API (internal)."""
