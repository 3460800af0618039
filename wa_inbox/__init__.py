"""WhatsApp-style inbox: webhook ingestion and conversation API."""

__version__ = "1.0.0"
