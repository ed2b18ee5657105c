"""Multi-turn, intent-scoped journey orchestration."""

__version__ = "0.1.0"
