"""Seeded synthetic-data generator for CRM demo tenants."""

__version__ = "0.1.0"
