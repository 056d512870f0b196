"""
Unit of work runner for multi-step writes.

The steps are written once as ``work(session, checkpoint)``. The runner picks
how ``checkpoint`` behaves:

- transactional: ``checkpoint`` flushes, one commit at the end, rollback on error
- sequential: ``checkpoint`` commits each step on its own, used when the store
  refuses multi-statement transactions (e.g. PgBouncer in statement pooling mode)

Transactional is tried first; the sequential strategy only runs when the store
answers with a transactions-unsupported error.

Sequential runs can leave committed steps behind when a later step fails. The
caller may pass ``compensate(session)`` to repair them; it runs once, after the
rollback, and its own failure is logged without hiding the original error.
"""
import logging
from typing import Awaitable, Callable, Optional, TypeVar
from fastapi import HTTPException
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")
Checkpoint = Callable[[], Awaitable[None]]
Work = Callable[[AsyncSession, Checkpoint], Awaitable[T]]
Compensate = Callable[[AsyncSession], Awaitable[None]]

# Error messages stores use when a transaction block is refused
TRANSACTION_UNSUPPORTED_SIGNATURES = (
    "transaction blocks not allowed",
    "transactions are not supported",
    "transaction numbers are only allowed",
    "cannot start a transaction",
)


def is_transaction_unsupported(exc: BaseException) -> bool:
    """True when ``exc`` says the store cannot run multi-statement transactions"""
    if not isinstance(exc, DBAPIError):
        return False
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(signature in message for signature in TRANSACTION_UNSUPPORTED_SIGNATURES)


async def run_transactional(session: AsyncSession, work: Work) -> T:
    try:
        result = await work(session, session.flush)
        await session.commit()
        return result
    except Exception:
        await session.rollback()
        raise


async def run_sequential(session: AsyncSession, work: Work, compensate: Optional[Compensate] = None) -> T:
    committed = 0

    async def checkpoint():
        nonlocal committed
        await session.commit()
        committed += 1

    try:
        return await work(session, checkpoint)
    except HTTPException as e:
        # Business rejection, not a failure
        await session.rollback()
        logger.info(f"Sequential unit of work rejected after {committed} committed step(s): {e.detail}")
        raise
    except Exception:
        await session.rollback()
        if not committed:
            raise
        logger.error(f"Sequential unit of work failed after {committed} committed step(s)")
        if compensate is not None:
            try:
                await compensate(session)
                logger.warning(f"Compensated {committed} committed step(s) of the failed unit of work")
            except Exception:
                await session.rollback()
                logger.exception("Compensation failed; committed steps are left for reconciliation")
        raise


async def run_unit_of_work(
    session: AsyncSession,
    work: Work,
    use_transactions: bool = True,
    compensate: Optional[Compensate] = None
) -> T:
    if use_transactions:
        try:
            return await run_transactional(session, work)
        except DBAPIError as e:
            if not is_transaction_unsupported(e):
                raise
            logger.warning(f"Transactions not supported by the store, running steps sequentially: {e.orig}")

    return await run_sequential(session, work, compensate=compensate)
