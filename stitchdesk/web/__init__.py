"""HTTP API for StitchDesk."""
