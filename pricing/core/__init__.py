"""Service orchestration, configuration and errors."""
