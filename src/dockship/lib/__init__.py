"""Shared helpers: errors, logging and secret masking."""
