import base64
import binascii
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import sessionmaker

from records_cli.db.live import ChangeHub, LiveQuery
from records_cli.db.session import transaction
from records_cli.errors import NotFound, PreconditionFailed, ValidationError
from records_cli.models import StudentRecord
from records_cli.student_fields import clean_student_fields
from records_cli.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class Page:
    records: List[StudentRecord]
    next_cursor: Optional[str]
    has_more: bool


def encode_cursor(record: StudentRecord) -> str:
    raw = json.dumps([record.created_at, record.id]).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> tuple[int, str]:
    try:
        created_at, record_id = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
    except (ValueError, TypeError, binascii.Error):
        raise ValidationError({"cursor": "is not a valid page token"})
    if not isinstance(created_at, int) or not isinstance(record_id, str):
        raise ValidationError({"cursor": "is not a valid page token"})
    return created_at, record_id


def escape_like(text: str) -> str:
    """Make ``%`` and ``_`` in user input match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _require_year(year: Optional[str]) -> str:
    if not year:
        raise PreconditionFailed("No active academic year selected")
    return year


class RecordStore:
    """Year-scoped access to student records."""

    def __init__(
        self,
        session_factory: sessionmaker,
        hub: ChangeHub,
        clock: Callable[[], int] = now_millis,
    ):
        self._session_factory = session_factory
        self._hub = hub
        self._clock = clock

    def create(self, year: Optional[str], fields: Mapping[str, Any]) -> str:
        """
        Register a new student in ``year``.

        Returns:
            The id of the new record

        Raises:
            ValidationError: When required fields are missing or malformed
            StoreUnavailable: On backend failure
        """
        year = _require_year(year)
        cleaned = clean_student_fields(fields)

        with transaction(self._session_factory) as db:
            record = StudentRecord(
                **cleaned, academic_year=year, created_at=self._clock()
            )
            db.add(record)
            db.flush()
            record_id = record.id

        logger.info(f"Created student record {record_id} for {year}")
        return record_id

    @staticmethod
    def _load(db, record_id: str, year: Optional[str]) -> StudentRecord:
        record = db.get(StudentRecord, record_id)
        # Records of other years are invisible to a year-scoped caller
        if record is None or (year is not None and record.academic_year != year):
            raise NotFound("Student record", record_id)
        return record

    def get(self, record_id: str, year: Optional[str] = None) -> StudentRecord:
        with transaction(self._session_factory) as db:
            return self._load(db, record_id, year)

    def update(
        self, record_id: str, patch: Mapping[str, Any], year: Optional[str] = None
    ) -> StudentRecord:
        """Apply a partial update; the year and creation time never change."""
        cleaned = clean_student_fields(patch, partial=True)

        with transaction(self._session_factory) as db:
            record = self._load(db, record_id, year)
            for key, value in cleaned.items():
                setattr(record, key, value)

        logger.info(f"Updated student record {record_id}: {sorted(cleaned)}")
        return record

    def delete(self, record_id: str, year: Optional[str] = None) -> None:
        """Permanently remove a record. Callers must check the admin role."""
        with transaction(self._session_factory) as db:
            record = self._load(db, record_id, year)
            db.delete(record)

        logger.info(f"Deleted student record {record_id}")

    def list_page(
        self,
        year: Optional[str],
        page_size: int = DEFAULT_PAGE_SIZE,
        cursor: Optional[str] = None,
    ) -> Page:
        """Return one page of ``year``'s records, newest first."""
        year = _require_year(year)
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(
                {"page_size": f"must be between 1 and {MAX_PAGE_SIZE}"}
            )

        query = select(StudentRecord).where(StudentRecord.academic_year == year)
        if cursor:
            created_at, record_id = decode_cursor(cursor)
            query = query.where(
                or_(
                    StudentRecord.created_at < created_at,
                    and_(
                        StudentRecord.created_at == created_at,
                        StudentRecord.id < record_id,
                    ),
                )
            )
        query = query.order_by(
            StudentRecord.created_at.desc(), StudentRecord.id.desc()
        ).limit(page_size + 1)

        with transaction(self._session_factory) as db:
            rows = list(db.scalars(query))

        has_more = len(rows) > page_size
        records = rows[:page_size]
        next_cursor = encode_cursor(records[-1]) if has_more else None
        return Page(records=records, next_cursor=next_cursor, has_more=has_more)

    def list_all(self, year: Optional[str]) -> List[StudentRecord]:
        year = _require_year(year)
        query = (
            select(StudentRecord)
            .where(StudentRecord.academic_year == year)
            .order_by(StudentRecord.created_at.desc(), StudentRecord.id.desc())
        )
        with transaction(self._session_factory) as db:
            return list(db.scalars(query))

    def search(self, year: Optional[str], text: str) -> List[StudentRecord]:
        """Find records in ``year`` whose name or NISN contains ``text``."""
        year = _require_year(year)
        pattern = f"%{escape_like(text.strip().lower())}%"
        query = (
            select(StudentRecord)
            .where(
                StudentRecord.academic_year == year,
                or_(
                    func.lower(StudentRecord.full_name).like(pattern, escape="\\"),
                    func.lower(StudentRecord.nisn).like(pattern, escape="\\"),
                ),
            )
            .order_by(StudentRecord.created_at.desc(), StudentRecord.id.desc())
        )
        with transaction(self._session_factory) as db:
            return list(db.scalars(query))

    def count(self, year: Optional[str]) -> int:
        year = _require_year(year)
        return self._count(StudentRecord.academic_year == year)

    def _count(self, *criteria) -> int:
        query = select(func.count()).select_from(StudentRecord).where(*criteria)
        with transaction(self._session_factory) as db:
            return db.scalar(query) or 0

    def watch_count(
        self, *criteria, poll_interval: Optional[float] = None
    ) -> LiveQuery[int]:
        """
        Live count of records matching ``criteria``.

        The returned query must be cancelled when no longer needed.
        """
        return LiveQuery(
            self._hub,
            [StudentRecord.__tablename__],
            lambda: self._count(*criteria),
            poll_interval=poll_interval,
        )
