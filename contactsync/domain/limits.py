"""Limits surfaced to API callers."""

# Contact sync
MAX_PHONE_NUMBERS_PER_SYNC = 10_000
MIN_BATCH_SIZE = 100
MAX_BATCH_SIZE = 1000
DEFAULT_BATCH_SIZE = 500

# Contact listing
MIN_RESULTS_PER_PAGE = 1
MAX_RESULTS_PER_PAGE = 100
DEFAULT_RESULTS_PER_PAGE = 50

# Contact search
SEARCH_MAX_RESULTS = 50
SEARCH_DEFAULT_RESULTS = 20
MIN_SEARCH_TERM_LENGTH = 2
MAX_SEARCH_TERM_LENGTH = 50

# Stats
RECENT_INTERACTION_DAYS = 30
