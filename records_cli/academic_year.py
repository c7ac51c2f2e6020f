import re
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from records_cli.db.session import transaction
from records_cli.errors import (
    NotFound,
    PreconditionFailed,
    StoreUnavailable,
    ValidationError,
)
from records_cli.models import AvailableAcademicYear
from records_cli.utils.local_state import LocalState
from records_cli.utils.logging_config import get_logger

logger = get_logger(__name__)

YEAR_PATTERN = re.compile(r"^\d{4}/\d{4}$")


def validate_year_format(year: str) -> str:
    year = (year or "").strip()
    if not year:
        raise ValidationError({"year": "must not be empty"})
    if not YEAR_PATTERN.match(year):
        raise ValidationError({"year": "must use the format YYYY/YYYY, e.g. 2024/2025"})
    return year


class AcademicYearCatalog:
    """The academic years an admin has made available for selection."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def list_years(self) -> List[str]:
        query = select(AvailableAcademicYear.year).order_by(AvailableAcademicYear.year.desc())
        with transaction(self._session_factory) as db:
            return list(db.scalars(query))

    def contains(self, year: str) -> bool:
        query = select(AvailableAcademicYear.id).where(AvailableAcademicYear.year == year)
        with transaction(self._session_factory) as db:
            return db.scalar(query.limit(1)) is not None

    def add_year(self, year: str) -> str:
        """
        Add ``year`` to the catalog and return the entry id.

        Uniqueness is checked before the insert, not enforced by the database.
        """
        year = validate_year_format(year)
        if self.contains(year):
            raise ValidationError({"year": f"{year} already exists"})

        with transaction(self._session_factory) as db:
            entry = AvailableAcademicYear(year=year)
            db.add(entry)
            db.flush()
            entry_id = entry.id

        logger.info(f"Added academic year {year}")
        return entry_id

    def remove_year(self, year: str) -> None:
        with transaction(self._session_factory) as db:
            entries = list(
                db.scalars(
                    select(AvailableAcademicYear).where(AvailableAcademicYear.year == year)
                )
            )
            if not entries:
                raise NotFound("Academic year", year)
            for entry in entries:
                db.delete(entry)

        logger.info(f"Removed academic year {year}")


class AcademicYearSelector:
    """
    The academic year this session operates on.

    Loaded from local state at start-up and written back on every change.
    Record operations must not run until a year is active.
    """

    STATE_KEY = "activeAcademicYear"

    def __init__(self, catalog: AcademicYearCatalog, state: LocalState):
        self._catalog = catalog
        self._state = state
        self._active: Optional[str] = None

    def load(self) -> Optional[str]:
        try:
            self._active = self._state.get(self.STATE_KEY)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read the active academic year: {e}")
            self._active = None
        return self._active

    @property
    def active_year(self) -> Optional[str]:
        return self._active

    @property
    def is_ready(self) -> bool:
        return self._active is not None

    def set_active(self, year: str) -> None:
        year = validate_year_format(year)
        available = self._catalog.list_years()
        if not available:
            raise ValidationError({"year": "no academic years are available yet"})
        if year not in available:
            raise ValidationError({"year": f"{year} is not an available academic year"})

        try:
            self._state.set(self.STATE_KEY, year)
        except OSError as e:
            raise StoreUnavailable(f"Could not save the active academic year: {e}") from e
        self._active = year
        logger.info(f"Active academic year set to {year}")

    def require_active(self) -> str:
        if self._active is None:
            raise PreconditionFailed("No active academic year selected")
        return self._active

    def clear(self) -> None:
        try:
            self._state.set(self.STATE_KEY, None)
        except OSError as e:
            raise StoreUnavailable(f"Could not clear the active academic year: {e}") from e
        self._active = None
