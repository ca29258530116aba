"""Core social graph services."""
