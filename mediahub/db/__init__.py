"""Database base, types and session management."""
