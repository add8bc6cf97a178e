"""EventNexus: multi-source event ingestion core."""

__version__ = "0.1.0"
