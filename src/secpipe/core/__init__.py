"""Core data model, scoping and logging for secpipe."""
