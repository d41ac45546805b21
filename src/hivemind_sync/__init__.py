"""Identity-stable document sharing between local vaults."""

__version__ = "0.1.0"
