"""navhistory: browsing history store with frecency ranking."""

__version__ = "0.1.0"
