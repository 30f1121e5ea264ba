"""Domain enums, month helpers and value types."""
