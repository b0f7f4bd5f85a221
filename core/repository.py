"""
Record stores consumed by the search funnel and the web layer.

Each store is an abstract interface plus an in-memory implementation with
optional JSON file persistence. Production deployments can swap in a
database-backed implementation of the same interface.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

from .exceptions import SearchRunNotFoundError
from .models import ConditionAssessment, Listing, PropertyAnalysis, SearchFilters, SearchRun


logger = logging.getLogger(__name__)


# =============================================================================
# File Persistence
# =============================================================================


class _JsonFileMixin:
    """
    Saves and loads a store's state to a JSON file when a path is given.

    Stores are shared between request threads and the event loop running
    background searches, so every mutation, dump and write happens under
    one re-entrant lock.
    """

    _persist_path: Optional[Path] = None

    def _init_persistence(self, persist_path: Optional[str]) -> None:
        self._lock = threading.RLock()
        self._persist_path = Path(persist_path) if persist_path else None
        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    def _save_to_file(self) -> None:
        """Persist data to file. Readers never see a partially written file."""
        if not self._persist_path:
            return

        with self._lock:
            data = self._dump()
            data["saved_at"] = datetime.utcnow().isoformat()

            self._persist_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._persist_path.with_name(self._persist_path.name + ".tmp")
            tmp_path.write_text(json.dumps(data, indent=2))
            os.replace(tmp_path, self._persist_path)

    def _load_from_file(self) -> None:
        """Load data from file."""
        try:
            self._restore(json.loads(self._persist_path.read_text()))
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            # Start fresh rather than refuse to boot
            logger.warning("Could not load %s: %s", self._persist_path, e)

    def _dump(self) -> dict:
        raise NotImplementedError

    def _restore(self, data: dict) -> None:
        raise NotImplementedError


# =============================================================================
# Listings
# =============================================================================


class ListingStore(ABC):
    """Read access to listings, with conjunctive filtering and pagination."""

    @abstractmethod
    def add_many(self, listings: Iterable[Listing]) -> int:
        """Insert or replace listings by id. Returns the number stored."""

    @abstractmethod
    def get(self, listing_id: str) -> Optional[Listing]:
        """Get a listing by id."""

    @abstractmethod
    def all(self) -> List[Listing]:
        """Every listing, ordered by id."""

    @abstractmethod
    def query(self, filters: SearchFilters, offset: int = 0, limit: int = 1000) -> List[Listing]:
        """
        One page of listings that pass every hard filter.

        Only listings with a positive price, a positive price per m² and a
        URL are returned. Results are ordered by id so pages are stable.
        """


class InMemoryListingStore(_JsonFileMixin, ListingStore):
    """Listing store backed by a dict."""

    def __init__(self, persist_path: Optional[str] = None):
        self._listings: Dict[str, Listing] = {}
        self._init_persistence(persist_path)

    def add_many(self, listings: Iterable[Listing]) -> int:
        count = 0
        with self._lock:
            for listing in listings:
                self._listings[listing.id] = listing
                count += 1
            self._save_to_file()
        return count

    def get(self, listing_id: str) -> Optional[Listing]:
        return self._listings.get(listing_id)

    def all(self) -> List[Listing]:
        with self._lock:
            return [self._listings[k] for k in sorted(self._listings)]

    def query(self, filters: SearchFilters, offset: int = 0, limit: int = 1000) -> List[Listing]:
        matched = [
            l for l in self.all()
            if l.is_scorable and l.url and filters.matches(l)
        ]
        return matched[offset:offset + limit]

    def __len__(self) -> int:
        return len(self._listings)

    def _dump(self) -> dict:
        return {"listings": [l.to_dict() for l in self.all()]}

    def _restore(self, data: dict) -> None:
        for item in data.get("listings", []):
            listing = Listing.from_dict(item)
            self._listings[listing.id] = listing


# =============================================================================
# Analyses
# =============================================================================


class AnalysisRepository(ABC):
    """
    Cache of AI analyses.

    Shared assessments are keyed by listing (the property's condition does
    not depend on who asked). Per-user analyses are keyed by (user, listing)
    because their valuation figures depend on the user's renovation settings.
    """

    @abstractmethod
    def get(self, user_id: str, listing_id: str) -> Optional[PropertyAnalysis]:
        """Get a user's analysis of a listing."""

    @abstractmethod
    def get_many(self, user_id: str, listing_ids: Iterable[str]) -> Dict[str, PropertyAnalysis]:
        """A user's analyses for several listings, keyed by listing id."""

    @abstractmethod
    def save(self, analysis: PropertyAnalysis) -> None:
        """Insert or replace a user's analysis."""

    @abstractmethod
    def get_shared(self, listing_id: str) -> Optional[ConditionAssessment]:
        """Get the shared condition assessment of a listing."""

    @abstractmethod
    def save_shared(self, listing_id: str, assessment: ConditionAssessment) -> None:
        """Insert or replace the shared condition assessment of a listing."""


class InMemoryAnalysisRepository(_JsonFileMixin, AnalysisRepository):
    """Analysis cache backed by dicts."""

    def __init__(self, persist_path: Optional[str] = None):
        self._analyses: Dict[tuple, PropertyAnalysis] = {}
        self._shared: Dict[str, ConditionAssessment] = {}
        self._init_persistence(persist_path)

    def get(self, user_id: str, listing_id: str) -> Optional[PropertyAnalysis]:
        return self._analyses.get((user_id, listing_id))

    def get_many(self, user_id: str, listing_ids: Iterable[str]) -> Dict[str, PropertyAnalysis]:
        found = {}
        for listing_id in listing_ids:
            analysis = self._analyses.get((user_id, listing_id))
            if analysis is not None:
                found[listing_id] = analysis
        return found

    def save(self, analysis: PropertyAnalysis) -> None:
        with self._lock:
            self._analyses[(analysis.user_id, analysis.listing_id)] = analysis
            self._save_to_file()

    def get_shared(self, listing_id: str) -> Optional[ConditionAssessment]:
        return self._shared.get(listing_id)

    def save_shared(self, listing_id: str, assessment: ConditionAssessment) -> None:
        with self._lock:
            self._shared[listing_id] = assessment
            self._save_to_file()

    def _dump(self) -> dict:
        return {
            "analyses": [a.to_dict() for a in self._analyses.values()],
            "shared": {lid: a.to_dict() for lid, a in self._shared.items()},
        }

    def _restore(self, data: dict) -> None:
        for item in data.get("analyses", []):
            analysis = PropertyAnalysis.from_dict(item)
            self._analyses[(analysis.user_id, analysis.listing_id)] = analysis
        for listing_id, item in data.get("shared", {}).items():
            self._shared[listing_id] = ConditionAssessment.from_dict(item)


# =============================================================================
# Search Runs
# =============================================================================


class SearchRunRepository(ABC):
    """Create/read/update access to search runs."""

    @abstractmethod
    def create(self, run: SearchRun) -> SearchRun:
        """Store a new run. Raises ValueError if the id already exists."""

    @abstractmethod
    def get(self, run_id: str) -> Optional[SearchRun]:
        """Get a run by id."""

    @abstractmethod
    def update(self, run: SearchRun) -> SearchRun:
        """Replace a stored run. Raises SearchRunNotFoundError if it does not exist."""

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[SearchRun]:
        """A user's runs, newest first."""


class InMemorySearchRunRepository(_JsonFileMixin, SearchRunRepository):
    """Search run repository backed by a dict."""

    def __init__(self, persist_path: Optional[str] = None):
        self._runs: Dict[str, SearchRun] = {}
        self._init_persistence(persist_path)

    def create(self, run: SearchRun) -> SearchRun:
        with self._lock:
            if run.id in self._runs:
                raise ValueError(f"Search run {run.id} already exists")
            self._runs[run.id] = run
            self._save_to_file()
        return run

    def get(self, run_id: str) -> Optional[SearchRun]:
        return self._runs.get(run_id)

    def update(self, run: SearchRun) -> SearchRun:
        with self._lock:
            if run.id not in self._runs:
                raise SearchRunNotFoundError(run.id)
            self._runs[run.id] = run
            self._save_to_file()
        return run

    def list_for_user(self, user_id: str) -> List[SearchRun]:
        with self._lock:
            runs = [r for r in self._runs.values() if r.user_id == user_id]
        return sorted(runs, key=lambda r: r.created_at, reverse=True)

    def _dump(self) -> dict:
        return {"runs": [r.to_dict() for r in self._runs.values()]}

    def _restore(self, data: dict) -> None:
        for item in data.get("runs", []):
            run = SearchRun.from_dict(item)
            self._runs[run.id] = run


# =============================================================================
# Preselection (favourites)
# =============================================================================


Subscriber = Callable[[str, Set[str]], None]


class PreselectionStore:
    """
    Per-user set of preselected (favourite) listings.

    Subscribers are called with (user_id, selected_ids) after every change.
    """

    def __init__(self):
        self._selected: Dict[str, Set[str]] = {}
        self._subscribers: List[Subscriber] = []

    def selected(self, user_id: str) -> Set[str]:
        return set(self._selected.get(user_id, set()))

    def is_selected(self, user_id: str, listing_id: str) -> bool:
        return listing_id in self._selected.get(user_id, set())

    def toggle(self, user_id: str, listing_id: str) -> bool:
        """Flip a listing's selection. Returns True if it is now selected."""
        ids = self._selected.setdefault(user_id, set())
        if listing_id in ids:
            ids.remove(listing_id)
            now_selected = False
        else:
            ids.add(listing_id)
            now_selected = True
        self._notify(user_id)
        return now_selected

    def clear(self, user_id: str) -> None:
        self._selected.pop(user_id, None)
        self._notify(user_id)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, user_id: str) -> None:
        snapshot = self.selected(user_id)
        for callback in list(self._subscribers):
            callback(user_id, snapshot)
