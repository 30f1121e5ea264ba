"""Pydantic bodies of the HTTP surface."""
