"""Core domain primitives: enums, state machine, backoff, and errors."""
