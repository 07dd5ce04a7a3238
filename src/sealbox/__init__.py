"""SealBox: transparent per-document encryption for a document store."""
