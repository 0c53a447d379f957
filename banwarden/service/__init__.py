"""Daemon lifecycle."""
