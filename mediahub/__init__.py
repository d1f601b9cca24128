"""MediaHub: session-backed auth and direct-to-storage upload orchestration."""

__version__ = "1.0.0"
