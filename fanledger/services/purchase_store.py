"""
Commit adapter for purchase writes.

``commit_once`` runs one write inside the session's transaction and reports
how it ended as a value instead of an exception:

- ``Created(value)``: the write committed.
- ``Reused(value)``: a matching row already existed; nothing was written.
- ``Conflict(constraint)``: the insert hit a uniqueness constraint and was
  rolled back. The caller decides whether that row is its own.

Any other error rolls back and propagates.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

log = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Created(Generic[T]):
    value: T


@dataclass(frozen=True)
class Reused(Generic[E]):
    value: E


@dataclass(frozen=True)
class Conflict:
    constraint: str | None = None


CommitResult = Union[Created[T], Reused[E], Conflict]


def _constraint_name(exc: IntegrityError) -> str | None:
    orig = exc.orig
    name = getattr(orig, "constraint_name", None) or getattr(getattr(orig, "diag", None), "constraint_name", None)
    if name:
        return name
    return str(orig).splitlines()[0][:200] if orig is not None else None


async def commit_once(
    db: AsyncSession,
    *,
    find_existing: Callable[[], Awaitable[E | None]],
    write: Callable[[], Awaitable[T]],
) -> CommitResult:
    try:
        existing = await find_existing()
        if existing is not None:
            return Reused(existing)
        value = await write()
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        constraint = _constraint_name(exc)
        log.info("purchase_store.conflict constraint=%s", constraint)
        return Conflict(constraint)
    except Exception:
        await db.rollback()
        raise
    return Created(value)
