"""HTTP API for MatchSQL."""
