"""csctl: build versioned cluster stack releases."""

__version__ = "0.1.0"
