"""Package exception hierarchy.

All client-side failures inherit from ``LearnAssistError`` so callers can
catch one type at the UI boundary.
"""

from __future__ import annotations


class LearnAssistError(Exception):
    """Base exception for all learnassist failures."""
