"""Real-time synchronized task timeline."""

__version__ = "0.1.0"
