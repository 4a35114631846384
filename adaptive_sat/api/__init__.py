"""Request-level dependencies."""
