"""
Council Node package initializer

Proposals, one-vote-per-member voting and an append-only audit trail,
served over FastAPI. Keep this module lightweight: importing the package
must not build an app or touch the state file.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
