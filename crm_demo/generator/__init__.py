"""Seeded data generation: planning, validation, chunked generation, verification and patching."""
