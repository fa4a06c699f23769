"""Configuration for the composer enrichment pipeline.

Defines source/staging table names, sink modes and the tie-break policy
used when two composers are equally frequent within an album.
"""

# Source relations (Chinook schema), loaded from SOURCE_NAMESPACE
SOURCE_NAMESPACE = "chinook"
TRACK_TABLE = "Track"
ALBUM_TABLE = "Album"
ARTIST_TABLE = "Artist"
GENRE_TABLE = "Genre"
CUSTOMER_TABLE = "Customer"
EMPLOYEE_TABLE = "Employee"
INVOICE_TABLE = "Invoice"
INVOICE_LINE_TABLE = "InvoiceLine"

SOURCE_TABLES = (
    TRACK_TABLE,
    ALBUM_TABLE,
    ARTIST_TABLE,
    GENRE_TABLE,
    CUSTOMER_TABLE,
    EMPLOYEE_TABLE,
    INVOICE_TABLE,
    INVOICE_LINE_TABLE,
)

# Output table (fully replaced on every staging run)
STAGING_TABLE = "chinook.staging_track_cleaned"

# Sink modes
SINK_VIEW = "view"  # computed on demand, never written
SINK_STAGING = "staging"  # all-or-nothing replace of STAGING_TABLE
SINK_MODES = (SINK_VIEW, SINK_STAGING)

# Rows per staged append inside the replace transaction
WRITE_BATCH_SIZE = 5000

# Tie-break: among equally frequent composers the lexicographically
# smallest name wins. Ranking is by OccurrenceCount desc, then Composer asc.
TIE_BREAK_DESCENDING = False

# Local catalog defaults (used when TABLE_BUCKET_ARN is not set)
DEFAULT_CATALOG_URI = "sqlite:///data/catalog.db"
DEFAULT_WAREHOUSE_PATH = "data/warehouse"
