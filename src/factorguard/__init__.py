"""factorguard — privacy-preserving invoice double-funding registry."""

__version__ = "0.3.0"
