"""
cencli: command-line client for the Censys platform API.

Builds on the core fetch engine:
- cencli.client: platform API client routed through RetryExecutor
- cencli.services: search, view, history and organization services
- cencli.cli: argparse entry point (``cencli`` / ``python -m cencli``)
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
