"""
Richest - remote runner for browser test snippets.

The server side executes submitted test code against a per-connection
Playwright session; the client side registers tests and runs them over a
persistent WebSocket connection.
"""

__version__ = "0.1.0"
