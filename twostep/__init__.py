"""twostep — TOTP two-step verification: engine, SQLite storage and Flask API."""

__version__ = "1.0.0"
