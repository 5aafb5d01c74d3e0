"""Core configuration, errors and signature primitives."""
