"""Data models for dockship configuration, releases and outcomes."""
