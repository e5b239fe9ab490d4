"""padsync - Cross-device sync for scratchpad tabs and clipboard history."""

__version__ = "0.1.0"
