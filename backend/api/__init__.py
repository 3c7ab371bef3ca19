"""HTTP API for the nearby places search."""
