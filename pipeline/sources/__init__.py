"""
Remote data source for World Heritage Sites.
"""

from .whs import (
    DataSourceError,
    DataSourceUnavailableError,
    MalformedResponseError,
    WorldHeritageSource,
    extract_site_records,
)

__all__ = [
    'WorldHeritageSource',
    'extract_site_records',
    'DataSourceError',
    'DataSourceUnavailableError',
    'MalformedResponseError',
]
