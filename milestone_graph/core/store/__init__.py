"""Snapshot sources for the dependency engine."""
