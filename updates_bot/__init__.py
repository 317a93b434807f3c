"""
Updates Bot.

Watches the Signal repositories on GitHub and reports new releases,
translation changes and newly credited translators exactly once.
"""

__version__ = "1.0.0"

from .orchestrator import ChangeOrchestrator
from .notifications import ChangeNotifier, LoggingNotifier

__all__ = ["__version__", "ChangeOrchestrator", "ChangeNotifier", "LoggingNotifier"]
