"""Optional Opik tracing and metrics."""
