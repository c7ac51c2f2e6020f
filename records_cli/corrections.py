import time
from typing import Callable, List, Literal, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from records_cli.auth import Identity
from records_cli.db.live import ChangeHub, LiveQuery
from records_cli.db.session import transaction
from records_cli.errors import AlreadyResolved, NotFound, ValidationError
from records_cli.models import CorrectionRequest, StudentRecord
from records_cli.student_fields import CORRECTABLE_FIELDS, get_field, normalize_value
from records_cli.utils.logging_config import AUDIT_LOGGER_NAME, get_logger

logger = get_logger(__name__)
audit = get_logger(AUDIT_LOGGER_NAME)

Decision = Literal["approve", "reject"]

MIN_NOTES_LENGTH = 10


def now_millis() -> int:
    return int(time.time() * 1000)


def _newest_first(requests: List[CorrectionRequest]) -> List[CorrectionRequest]:
    return sorted(requests, key=lambda r: (r.request_date, r.id), reverse=True)


class CorrectionWorkflow:
    """
    Proposal, review and approval of single-field corrections.

    A request starts as ``pending`` and is resolved exactly once, to
    ``approved`` (the new value is written to the student record in the same
    transaction) or ``rejected`` (the record is left alone).
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        hub: ChangeHub,
        clock: Callable[[], int] = now_millis,
    ):
        self._session_factory = session_factory
        self._hub = hub
        self._clock = clock

    def submit(
        self,
        record_id: str,
        field: str,
        new_value: str,
        justification: str,
        requester: Identity,
        year: Optional[str] = None,
    ) -> str:
        """
        File a correction request against a student record.

        The record's current value of ``field`` is captured as ``old_value``.
        With ``year`` set, records of other academic years are not found.

        Returns:
            The id of the new request

        Raises:
            ValidationError: Unknown field, empty value or short justification
            NotFound: When the record does not exist
        """
        errors = {}
        definition = get_field(field) if field in CORRECTABLE_FIELDS else None
        value = normalize_value(new_value)
        notes = (justification or "").strip()

        if definition is None:
            errors["field"] = f"{field!r} cannot be corrected"
        if value is None:
            errors["new_value"] = "must not be empty"
        elif definition is not None:
            message = definition.check(value)
            if message:
                errors["new_value"] = message
        if len(notes) < MIN_NOTES_LENGTH:
            errors["notes"] = f"must be at least {MIN_NOTES_LENGTH} characters"
        if errors:
            raise ValidationError(errors)

        with transaction(self._session_factory) as db:
            record = db.get(StudentRecord, record_id)
            if record is None or (year is not None and record.academic_year != year):
                raise NotFound("Student record", record_id)

            request = CorrectionRequest(
                student_id=record.id,
                student_name=record.full_name,
                requested_by_user_id=requester.uid,
                requested_by_user_name=requester.label,
                field_to_correct=field,
                old_value=getattr(record, field),
                new_value=value,
                notes=notes,
                status="pending",
                request_date=self._clock(),
            )
            db.add(request)
            db.flush()
            request_id = request.id

        audit.info(
            f"Submitted {request_id}: {record_id}.{field} {request.old_value!r} -> {value!r} "
            f"by {requester.label}"
        )
        return request_id

    def resolve(
        self, request_id: str, decision: Decision, resolver: Identity
    ) -> CorrectionRequest:
        """
        Approve or reject a pending request.

        On approval the request's status and the record's field are committed
        in one transaction. The captured ``old_value`` is not compared with
        the record's current value.

        Raises:
            AlreadyResolved: When the request is no longer pending
            NotFound: When the request or its student record is missing
        """
        if decision not in ("approve", "reject"):
            raise ValidationError({"decision": "must be 'approve' or 'reject'"})

        try:
            with transaction(self._session_factory) as db:
                request = db.get(CorrectionRequest, request_id, with_for_update=True)
                if request is None:
                    raise NotFound("Correction request", request_id)
                if request.status != "pending":
                    raise AlreadyResolved(request_id, request.status)

                record = db.get(StudentRecord, request.student_id)
                if record is None:
                    raise NotFound("Student record", request.student_id)

                request.status = "approved" if decision == "approve" else "rejected"
                request.approved_by_user_id = resolver.uid
                request.approval_date = self._clock()

                if decision == "approve":
                    setattr(record, request.field_to_correct, request.new_value)
        except StaleDataError:
            # Another reviewer committed first
            raise AlreadyResolved(request_id)

        audit.info(f"{request.status.capitalize()} {request_id} by {resolver.label}")
        return request

    def approve(self, request_id: str, resolver: Identity) -> CorrectionRequest:
        return self.resolve(request_id, "approve", resolver)

    def reject(self, request_id: str, resolver: Identity) -> CorrectionRequest:
        return self.resolve(request_id, "reject", resolver)

    def get(self, request_id: str) -> CorrectionRequest:
        with transaction(self._session_factory) as db:
            request = db.get(CorrectionRequest, request_id)
            if request is None:
                raise NotFound("Correction request", request_id)
            return request

    def list_pending(self) -> List[CorrectionRequest]:
        """Pending requests, newest first."""
        query = select(CorrectionRequest).where(CorrectionRequest.status == "pending")
        with transaction(self._session_factory) as db:
            requests = list(db.scalars(query))
        # Sorted here; the store is only filtered on status
        return _newest_first(requests)

    def pending_count(self) -> int:
        query = (
            select(func.count())
            .select_from(CorrectionRequest)
            .where(CorrectionRequest.status == "pending")
        )
        with transaction(self._session_factory) as db:
            return db.scalar(query) or 0

    def history(self, record_id: str) -> List[CorrectionRequest]:
        """Every request ever filed against ``record_id``, newest first."""
        query = select(CorrectionRequest).where(
            CorrectionRequest.student_id == record_id
        )
        with transaction(self._session_factory) as db:
            return _newest_first(list(db.scalars(query)))

    def watch_pending(
        self, poll_interval: Optional[float] = None
    ) -> LiveQuery[List[CorrectionRequest]]:
        """Live pending list; re-emitted in full after each change. Cancel when done."""
        return LiveQuery(
            self._hub,
            [CorrectionRequest.__tablename__],
            self.list_pending,
            poll_interval=poll_interval,
            fingerprint=lambda requests: [(r.id, r.version) for r in requests],
        )

    def watch_pending_count(
        self, poll_interval: Optional[float] = None
    ) -> LiveQuery[int]:
        return LiveQuery(
            self._hub,
            [CorrectionRequest.__tablename__],
            self.pending_count,
            poll_interval=poll_interval,
        )
