"""HTTP API layer for the care security backend."""
