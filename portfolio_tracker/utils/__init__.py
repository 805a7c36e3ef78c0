# portfolio_tracker/utils/__init__.py
"""
Utility modules for the portfolio tracker.

- logging: Logging configuration (text or JSON, noisy loggers quieted)

Usage:
    from portfolio_tracker.utils import setup_logging
"""

from portfolio_tracker.utils.logging import setup_logging

__all__ = [
    "setup_logging",
]
