"""SQLite schema definitions for the SealBox document store."""

CREATE_TABLES = [
    # Replicated application documents; body is the JSON record as written
    # (already encrypted when a codec is registered), without id/rev.
    """
    CREATE TABLE IF NOT EXISTS documents (
        doc_id TEXT PRIMARY KEY,
        rev TEXT NOT NULL,
        seq INTEGER NOT NULL,
        body TEXT NOT NULL
    )
    """,
    # Local, non-replicated records (crypto config, password check)
    """
    CREATE TABLE IF NOT EXISTS local_documents (
        doc_id TEXT PRIMARY KEY,
        body TEXT NOT NULL
    )
    """,
]


def get_init_schema():
    """
    Get complete schema initialization SQL

    Returns:
        List of SQL statements to execute
    """
    return list(CREATE_TABLES)
