"""ollama-chat: streams model responses into the shared conversation store."""

__version__ = "0.1.0"
