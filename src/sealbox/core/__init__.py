"""Core models and exceptions of SealBox."""
