"""FFM Club social graph and messaging service."""

__version__ = "0.1.0"
