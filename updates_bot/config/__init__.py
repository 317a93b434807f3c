"""Configuration: environment settings and per-platform conventions."""
