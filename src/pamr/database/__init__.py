"""Database layer for PAMr."""

from pamr.database.extractor import get_db_data, match_tables
from pamr.database.sample_rate import SampleRatePolicy
from pamr.database.session import database_scope

__all__ = [
    "SampleRatePolicy",
    "database_scope",
    "get_db_data",
    "match_tables",
]
