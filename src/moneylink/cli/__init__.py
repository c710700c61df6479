"""MoneyLink CLI package.

This package provides a command-line interface for operating the backend side
of the account-linking flow: connection status, previews and service syncs.
"""

from .main import app, main

__all__ = ["app", "main"]
