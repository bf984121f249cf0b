"""CI-SNAPSHOT: capture CI API resources as static JSON fixtures."""

__version__ = "0.1.0"
