"""credforge: credential resilience and migration engine."""

__version__ = "0.1.0"
