"""Request routing."""
