"""API error types and exception handlers."""
