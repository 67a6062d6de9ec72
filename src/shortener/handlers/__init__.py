"""
Request handlers.

LinkHandler: shorten URLs and follow short codes.
"""

from .links import LinkHandler, extract_url, USAGE

__all__ = [
    "LinkHandler",
    "extract_url",
    "USAGE",
]
