"""Command-line interface for outlook-mcp."""
