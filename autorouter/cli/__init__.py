"""Command-line interface for autorouter."""
