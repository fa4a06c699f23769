"""Composer enrichment pipeline (album majority vote)."""

from .inference import enrich_tracks as enrich_tracks
from .load import replace_staging_table as replace_staging_table
from .main import run as run
