"""
User directory with email encrypted at rest.
"""

__version__ = "1.0.0"
