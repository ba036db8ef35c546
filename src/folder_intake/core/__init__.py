"""Core intake logic: configuration, scan sessions and selection."""
