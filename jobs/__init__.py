"""Background jobs for the rewards engines."""
