"""Core components for partition log storage."""
