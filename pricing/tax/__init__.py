"""Tax jurisdiction resolution."""
