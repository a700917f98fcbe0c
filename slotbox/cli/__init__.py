"""Command-line interface for slotbox."""
