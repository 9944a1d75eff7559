"""Artifact keys and record types."""
