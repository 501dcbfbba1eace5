"""
Error taxonomy for guest directory ingestion and storage
"""


class GuestDirectoryError(Exception):
    """Base class for guest directory errors"""


class DecodeError(GuestDirectoryError):
    """The uploaded bytes could not be read as tabular data"""

    user_message = "We could not process that file. Please try another."


class SourceUnavailable(GuestDirectoryError):
    """A guest list source failed or is not reachable"""


class PersistenceFailure(GuestDirectoryError):
    """Writing to the cache, remote store or asset storage failed"""


EMPTY_RESULT_HINT = (
    'We could not find any guests. Make sure column A lists guest names '
    'and table labels like "Table 1".'
)
