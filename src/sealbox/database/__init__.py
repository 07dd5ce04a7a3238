"""SQLite document store of SealBox."""
