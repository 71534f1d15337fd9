"""
Polyglot — Per-language mirrors of media libraries.

Each mirror is a hardlinked copy of a source library's media files, so a
host media server can scan the same content a second time with different
metadata language settings without duplicating storage.
"""

__version__ = "0.1.0"
