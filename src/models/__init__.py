"""Data models for identities, sweep records and runs."""
