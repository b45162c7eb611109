"""
In-memory cache of filter maps keyed by marketplace host.

Entries never expire; a restart is the only way to refresh them. The
host entry holds only the filter-name translation table. The query block
the page resolves for a filter path (region, category, deal type) is
stored separately per path, since it differs between searches on the
same host.
"""

from typing import Dict, Optional

from ..models.parameter_map import FilterMap

_MISSING = object()


class ParameterMapCache:
    """Host-keyed filter map storage owned by whoever creates it."""

    def __init__(self):
        self._entries: Dict[str, FilterMap] = {}
        self._base_queries: Dict[str, Optional[Dict[str, str]]] = {}

    def get(self, host: str) -> Optional[FilterMap]:
        return self._entries.get(host)

    def set(self, host: str, filter_map: FilterMap) -> None:
        if host in self._entries:
            # first resolution wins for the process lifetime
            return
        self._entries[host] = FilterMap(
            params=dict(filter_map.params), base_query=None, source=filter_map.source
        )

    def has_base_query(self, path_key: str) -> bool:
        return path_key in self._base_queries

    def get_base_query(self, path_key: str) -> Optional[Dict[str, str]]:
        base_query = self._base_queries.get(path_key, _MISSING)
        if base_query is _MISSING or base_query is None:
            return None
        return dict(base_query)

    def set_base_query(self, path_key: str, base_query: Optional[Dict[str, str]]) -> None:
        """Remember the page query for one filter path; None means the page had none."""
        self._base_queries[path_key] = dict(base_query) if base_query is not None else None

    def __contains__(self, host: str) -> bool:
        return host in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def hosts(self):
        return list(self._entries.keys())
