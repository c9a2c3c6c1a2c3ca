"""
Persistence collaborator for the maintenance tooling.

Responsibilities:
- Read members, ledger entries and domain records.
- Write member totals and delete records, in batches where possible.
- Translate database errors into StoreFailure.

Non-Responsibilities:
- No business logic. Totals are computed by scoring, duplicates are
  planned by dedup.

Invariant:
Every write is committed or rolled back before the method returns.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, Union

from sqlalchemy import func
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from .database import Member, PointEntry, session_scope
from .errors import ClubAdminError, NotFoundError, StoreFailure
from .logger import get_logger
from .retry import RetryError, is_transient_error, retry_call

logger = get_logger()


class ClubStore:
    """
    Database handle passed explicitly to ledger, scoring and cleanup code.

    Args:
        session: Open SQLAlchemy session; the store does not close it
        max_retries: Retries for transient database errors
        retry_delay: Initial backoff delay in seconds
    """

    def __init__(self, session: Session, max_retries: int = 2, retry_delay: float = 0.1):
        self.session = session
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @classmethod
    @contextmanager
    def open(cls, database: Union[str, Path], **kwargs) -> Iterator["ClubStore"]:
        """Open a store for one operation; the session is released on exit."""
        with session_scope(database) as session:
            yield cls(session, **kwargs)

    # Internals

    def _run(self, operation: str, work: Callable, commit: bool = False):
        logger.record_store_call()

        def attempt():
            result = work()
            if commit:
                self.session.commit()
            return result

        try:
            return retry_call(
                attempt,
                max_retries=self.max_retries,
                base_delay=self.retry_delay,
                exceptions=(OperationalError,),
                on_retry=self._on_retry,
                retry_if=is_transient_error,
            )
        except (RetryError, SQLAlchemyError) as e:
            self.session.rollback()
            logger.error(f"Store operation failed: {operation}", error=str(e))
            raise StoreFailure(f"{operation} failed: {e}") from e
        except ClubAdminError:
            # e.g. an immutable ledger edit rejected during flush
            self.session.rollback()
            raise

    def _on_retry(self, attempt: int, exception: Exception, delay: float):
        self.session.rollback()
        logger.warning(
            "Transient store error, retrying",
            attempt=attempt,
            delay=delay,
            error=str(exception),
        )

    # Members and ledger

    def fetch_member(self, member_id: str) -> Optional[Member]:
        return self._run("fetch_member", lambda: self.session.get(Member, member_id))

    def fetch_all_members(self) -> List[str]:
        """Return every member id, oldest member first."""
        def work():
            rows = self.session.query(Member.id).order_by(Member.created_at, Member.id).all()
            return [row[0] for row in rows]
        return self._run("fetch_all_members", work)

    def fetch_member_totals(self, member_ids: Optional[Sequence[str]] = None) -> Dict[str, int]:
        """Return cached totals keyed by member id; unknown ids are absent."""
        def work():
            query = self.session.query(Member.id, Member.points)
            if member_ids is not None:
                query = query.filter(Member.id.in_(list(member_ids)))
            return {member_id: points or 0 for member_id, points in query.all()}
        return self._run("fetch_member_totals", work)

    def fetch_ledger_entries(self, member_id: str) -> List[PointEntry]:
        """Return a member's ledger entries in the order they were written."""
        def work():
            return (
                self.session.query(PointEntry)
                .filter(PointEntry.member_id == member_id)
                .order_by(PointEntry.created_at, PointEntry.id)
                .all()
            )
        return self._run("fetch_ledger_entries", work)

    def sum_ledger_by_member(self, member_ids: Optional[Sequence[str]] = None) -> Dict[str, int]:
        """Sum ledger amounts per member in one grouped query. Members without entries are absent."""
        def work():
            query = self.session.query(PointEntry.member_id, func.sum(PointEntry.amount))
            if member_ids is not None:
                query = query.filter(PointEntry.member_id.in_(list(member_ids)))
            rows = query.group_by(PointEntry.member_id).all()
            return {member_id: int(total or 0) for member_id, total in rows}
        return self._run("sum_ledger_by_member", work)

    def write_member_total(self, member_id: str, total: int) -> bool:
        """Overwrite a member's cached total. Returns False if the member does not exist."""
        def work():
            updated = (
                self.session.query(Member)
                .filter(Member.id == member_id)
                .update(
                    {Member.points: total, Member.updated_at: datetime.now()},
                    synchronize_session=False,
                )
            )
            return updated == 1
        return self._run("write_member_total", work, commit=True)

    def append_entry(
        self,
        member_id: str,
        amount: int,
        source: str = "MANUAL",
        reason: Optional[str] = None,
        source_ref: Optional[str] = None,
    ) -> PointEntry:
        """Append a ledger entry and move the cached total by the same amount."""
        def work():
            if self.session.get(Member, member_id) is None:
                raise NotFoundError(f"Member not found: {member_id}")
            entry = PointEntry(
                member_id=member_id,
                amount=amount,
                source=source,
                reason=reason,
                source_ref=source_ref,
                created_at=datetime.now(),
            )
            self.session.add(entry)
            self.session.query(Member).filter(Member.id == member_id).update(
                {Member.points: Member.points + amount, Member.updated_at: datetime.now()},
                synchronize_session=False,
            )
            return entry
        return self._run("append_entry", work, commit=True)

    def fetch_entries_by_source(self, member_id: str, source_ref: str) -> List[PointEntry]:
        def work():
            return (
                self.session.query(PointEntry)
                .filter(PointEntry.member_id == member_id, PointEntry.source_ref == source_ref)
                .order_by(PointEntry.created_at, PointEntry.id)
                .all()
            )
        return self._run("fetch_entries_by_source", work)

    def fetch_history(self, member_id: str, limit: int = 100) -> List[PointEntry]:
        """Non-zero entries, newest first."""
        def work():
            return (
                self.session.query(PointEntry)
                .filter(PointEntry.member_id == member_id, PointEntry.amount != 0)
                .order_by(PointEntry.created_at.desc(), PointEntry.id.desc())
                .limit(limit)
                .all()
            )
        return self._run("fetch_history", work)

    def clear_ledger(self) -> Tuple[int, int]:
        """Delete every ledger entry and zero every cached total in one transaction."""
        def work():
            entries = self.session.query(PointEntry).delete(synchronize_session=False)
            members = self.session.query(Member).update(
                {Member.points: 0, Member.updated_at: datetime.now()},
                synchronize_session=False,
            )
            return entries, members
        return self._run("clear_ledger", work, commit=True)

    # Generic records

    def fetch_records(self, model, *criteria, order_by=None) -> list:
        """Return records of `model` matching `criteria`, oldest first unless `order_by` is given."""
        def work():
            query = self.session.query(model)
            if criteria:
                query = query.filter(*criteria)
            if order_by is None:
                query = query.order_by(model.created_at, model.id)
            else:
                query = query.order_by(*order_by)
            return query.all()
        return self._run(f"fetch_records({model.__tablename__})", work)

    def count(self, model, *criteria) -> int:
        def work():
            query = self.session.query(model)
            if criteria:
                query = query.filter(*criteria)
            return query.count()
        return self._run(f"count({model.__tablename__})", work)

    def existing_ids(self, model, ids: Iterable[str]) -> Set[str]:
        ids = list(ids)

        def work():
            if not ids:
                return set()
            rows = self.session.query(model.id).filter(model.id.in_(ids)).all()
            return {row[0] for row in rows}
        return self._run(f"existing_ids({model.__tablename__})", work)

    def delete_record(self, model, record_id) -> bool:
        """Delete one record. Returns False if it does not exist."""
        def work():
            deleted = (
                self.session.query(model)
                .filter(model.id == record_id)
                .delete(synchronize_session=False)
            )
            return deleted == 1
        return self._run(f"delete_record({model.__tablename__})", work, commit=True)

    def delete_records(self, model, record_ids: Sequence) -> int:
        """Delete many records in one statement and one commit."""
        record_ids = list(record_ids)
        if not record_ids:
            return 0

        def work():
            return (
                self.session.query(model)
                .filter(model.id.in_(record_ids))
                .delete(synchronize_session=False)
            )
        return self._run(f"delete_records({model.__tablename__})", work, commit=True)

    def merge_into(self, model, canonical_id, duplicate_ids: Sequence, references: Sequence[Tuple]) -> int:
        """
        Point every reference at the canonical record, then delete the duplicates.

        Args:
            model: Model of the merged records
            canonical_id: Record that survives
            duplicate_ids: Records to fold into the canonical one
            references: (model, column) pairs holding foreign keys to `model`

        Returns:
            Number of duplicate records deleted
        """
        duplicate_ids = list(duplicate_ids)
        if not duplicate_ids:
            return 0

        def work():
            for ref_model, column in references:
                moved = (
                    self.session.query(ref_model)
                    .filter(column.in_(duplicate_ids))
                    .update({column: canonical_id}, synchronize_session=False)
                )
                if moved:
                    logger.info(
                        f"Reassigned {moved} {ref_model.__tablename__} to {canonical_id}",
                        from_ids=duplicate_ids,
                    )
            return (
                self.session.query(model)
                .filter(model.id.in_(duplicate_ids))
                .delete(synchronize_session=False)
            )
        return self._run(f"merge_into({model.__tablename__})", work, commit=True)

    def add_all(self, records: Sequence) -> int:
        """Insert records in one commit."""
        records = list(records)
        if not records:
            return 0

        def work():
            self.session.add_all(records)
            return len(records)
        return self._run("add_all", work, commit=True)

    def update_record(self, model, record_id, values: Dict) -> bool:
        """Set column values on one record. Returns False if it does not exist."""
        def work():
            updated = (
                self.session.query(model)
                .filter(model.id == record_id)
                .update(values, synchronize_session=False)
            )
            return updated == 1
        return self._run(f"update_record({model.__tablename__})", work, commit=True)

    def count_references(self, column) -> Dict:
        """Rows per value of a foreign key column, in one grouped query."""
        def work():
            rows = (
                self.session.query(column, func.count())
                .filter(column.isnot(None))
                .group_by(column)
                .all()
            )
            return {value: count for value, count in rows}
        return self._run(f"count_references({column.key})", work)
