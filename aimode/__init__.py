"""AI Mode Queries — telemetry service for search queries reported by the browser extension."""

__version__ = "1.0.0"
