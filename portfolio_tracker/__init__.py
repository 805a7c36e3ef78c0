# portfolio_tracker/__init__.py
"""
Portfolio tracker core.

Turns a stream of trade executions into FIFO positions, realized and
unrealized gains, a portfolio summary and a monthly timeline, priced
through a cached, provider-fallback price service.
"""

__version__ = "0.1.0"
