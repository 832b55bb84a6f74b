"""Background writes of search keywords, retried on failure."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable

from horm_manage.models import Database, ManageError, SearchKeyword

SEARCH_TABLE = "tbl_search_keyword"


class SearchKeywordRepository:
    """Writes search keywords in a background thread.

    Each write is tried up to ``retries`` times, ``delay`` seconds apart;
    a write that keeps failing is dropped.  Every method returns the thread
    doing the work, so a caller may join it.
    """

    def __init__(self, db: Database, retries: int = 3, delay: float = 1.0) -> None:
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self._db = db
        self._retries = retries
        self._delay = delay

    def _attempt(self, work: Callable[[], object]) -> None:
        for attempt in range(self._retries):
            if attempt:
                time.sleep(self._delay)
            try:
                work()
                return
            except (ManageError, ValueError):
                continue

    def _spawn(self, work: Callable[[], object]) -> threading.Thread:
        thread = threading.Thread(target=self._attempt, args=(work,), daemon=True)
        thread.start()
        return thread

    def add(self, keyword: SearchKeyword) -> threading.Thread:
        return self._spawn(lambda: self._db.replace(SEARCH_TABLE, keyword))

    def add_many(self, keywords: Iterable[SearchKeyword]) -> threading.Thread:
        items = list(keywords)

        def work() -> None:
            for keyword in items:
                self._db.replace(SEARCH_TABLE, keyword)

        return self._spawn(work)

    def delete(self, kind: int, sid: int, field: str, skey: str) -> threading.Thread:
        where = {"type": kind, "sid": sid, "field": field, "skey": skey}
        return self._spawn(lambda: self._db.delete(SEARCH_TABLE, where))