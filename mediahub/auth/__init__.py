"""External identity provider and session cookie helpers."""
