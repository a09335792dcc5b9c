"""
QuickNote: portable knowledge pocket.

A local note store that provides:
- Pattern-based classification at capture time
- Ranked full-text search
- Spaced-repetition review of notes
"""

__version__ = "0.1.0"
