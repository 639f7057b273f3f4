"""
Content API — Generic record store

Thin per-model wrapper over an AsyncSession. Every method returns a Result;
SQLAlchemy errors are logged here and mapped to EXTERNAL failures so callers
never see driver exceptions.
"""
import logging
from typing import Any, Generic, Iterable, Mapping, Sequence, TypeVar

from sqlalchemy import delete as sa_delete, func, inspect as sa_inspect, select, update as sa_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from infinite_flow.core.result import ErrorKind, Result
from infinite_flow.db.database import Base, utcnow

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Base)


class RecordStore(Generic[M]):
    def __init__(self, session: AsyncSession, model: type[M], label: str | None = None):
        self.session = session
        self.model = model
        self.label = label or model.__tablename__.replace("_", " ")
        self.pk_name = sa_inspect(model).primary_key[0].name

    @property
    def pk(self):
        return getattr(self.model, self.pk_name)

    def column(self, name: str):
        return getattr(self.model, name)

    def _conditions(self, filters: Mapping[str, Any] | None) -> list:
        conditions = []
        for name, value in (filters or {}).items():
            col = self.column(name)
            conditions.append(col.is_(None) if value is None else col == value)
        return conditions

    async def _failed(self, action: str, exc: Exception) -> Result:
        await self.session.rollback()
        if isinstance(exc, IntegrityError):
            logger.warning("Integrity error on %s %s: %s", action, self.label, exc.orig)
            return Result.fail(ErrorKind.CONFLICT, f"Failed to {action} {self.label}: record conflicts with existing data.")
        logger.error("Database error on %s %s: %s", action, self.label, exc)
        return Result.fail(ErrorKind.EXTERNAL, f"Failed to {action} {self.label}.")

    # ── Reads ─────────────────────────────────────────────────

    async def get(self, record_id: Any, options: Iterable = (), refresh: bool = False) -> Result[M]:
        """`refresh` reloads an instance already in the session, eager options included."""
        try:
            stmt = select(self.model).where(self.pk == record_id).options(*options)
            if refresh:
                stmt = stmt.execution_options(populate_existing=True)
            record = (await self.session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            return await self._failed("fetch", exc)
        if record is None:
            return Result.fail(ErrorKind.NOT_FOUND, f"{self.label.capitalize()} not found.")
        return Result.ok(record)

    async def list(
        self,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence = (),
        where: Sequence = (),
        options: Iterable = (),
        limit: int | None = None,
        offset: int | None = None,
    ) -> Result[list[M]]:
        """Select rows matching equality `filters` plus any extra `where` clauses."""
        stmt = (
            select(self.model)
            .where(*self._conditions(filters), *where)
            .order_by(*order_by)
            .options(*options)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        try:
            rows = (await self.session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            return await self._failed("list", exc)
        return Result.ok(list(rows))

    async def count(self, filters: Mapping[str, Any] | None = None, where: Sequence = ()) -> Result[int]:
        stmt = select(func.count()).select_from(self.model).where(*self._conditions(filters), *where)
        try:
            value = (await self.session.execute(stmt)).scalar_one()
        except SQLAlchemyError as exc:
            return await self._failed("count", exc)
        return Result.ok(value)

    async def max_value(self, column: str, filters: Mapping[str, Any] | None = None) -> Result[int | None]:
        stmt = select(func.max(self.column(column))).where(*self._conditions(filters))
        try:
            value = (await self.session.execute(stmt)).scalar()
        except SQLAlchemyError as exc:
            return await self._failed("read", exc)
        return Result.ok(value)

    # ── Writes ────────────────────────────────────────────────

    async def insert(self, values: Mapping[str, Any]) -> Result[M]:
        record = self.model(**values)
        self.session.add(record)
        try:
            await self.session.commit()
            await self.session.refresh(record)
        except SQLAlchemyError as exc:
            return await self._failed("create", exc)
        return Result.ok(record)

    async def update(self, record_id: Any, values: Mapping[str, Any]) -> Result[M]:
        found = await self.get(record_id)
        if not found.success:
            return found
        record = found.data
        for name, value in values.items():
            setattr(record, name, value)
        try:
            await self.session.commit()
            await self.session.refresh(record)
        except SQLAlchemyError as exc:
            return await self._failed("update", exc)
        return Result.ok(record)

    async def soft_delete(
        self, record_id: Any, flag: str = "is_deleted", stamp: str = "deleted_time"
    ) -> Result[M]:
        return await self.update(record_id, {flag: True, stamp: utcnow()})

    async def delete(self, record_id: Any) -> Result[None]:
        try:
            result = await self.session.execute(sa_delete(self.model).where(self.pk == record_id))
            await self.session.commit()
        except SQLAlchemyError as exc:
            return await self._failed("delete", exc)
        if result.rowcount == 0:
            return Result.fail(ErrorKind.NOT_FOUND, f"{self.label.capitalize()} not found.")
        return Result.ok(None)

    async def update_many(self, changes: Sequence[tuple[Any, Mapping[str, Any]]]) -> Result[int]:
        """
        Apply one UPDATE per row, committing each before the next.

        The batch is not atomic: on the first failing row the rows before it stay
        written. The failure carries the number of rows applied as data.
        """
        applied = 0
        for record_id, values in changes:
            try:
                result = await self.session.execute(
                    sa_update(self.model).where(self.pk == record_id).values(**values)
                )
                await self.session.commit()
            except SQLAlchemyError as exc:
                await self.session.rollback()
                logger.error(
                    "Bulk update of %s stopped at row %s after %d/%d rows: %s",
                    self.label, record_id, applied, len(changes), exc,
                )
                return Result.fail(ErrorKind.PARTIAL, f"Failed to update {self.label} order.", data=applied)
            if result.rowcount == 0:
                logger.warning("Bulk update of %s: row %s no longer exists", self.label, record_id)
                self.session.expire_all()
                return Result.fail(ErrorKind.PARTIAL, f"Failed to update {self.label} order.", data=applied)
            applied += 1
        # rows already loaded in this session still hold the old values
        self.session.expire_all()
        return Result.ok(applied)
