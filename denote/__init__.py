"""denote: a self-hosted weekly TL;DR digest of your feeds."""

__version__ = "0.1.0"
