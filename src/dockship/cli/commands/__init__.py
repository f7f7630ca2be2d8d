"""Dockship CLI commands."""
