"""HTTP API for session lifecycle operations."""
