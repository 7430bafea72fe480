"""Version information for HSSEGuard."""

__version__ = "0.1.0"
