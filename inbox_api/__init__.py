"""Private messaging inbox service."""
