"""HTTP API for Backlogus."""
