"""
notegraph - a local note graph storage engine.

Stores markdown notes together with the facts derived from their content
(wikilinks, hierarchical tags and checklist tasks) in SQLite, and provides
accent-insensitive ranked search over the active notes.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notegraph")
except PackageNotFoundError:
    __version__ = "0.3.0"
