"""Core utilities: phone handling, auth, errors, request context."""
