"""netquality — network connection quality checker."""

__version__ = "0.1.0"
