"""pagesync - Two-way sync between a local store and Notion-style databases."""

__version__ = "0.1.0"
