"""Command-line interface for Dockship."""
