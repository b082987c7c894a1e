"""
Unit of Work Pattern - one transaction across the inventory repositories

Architecture:
- UoW owns the session (or staged writes) for exactly one transaction
- UoW is responsible for commit/rollback
- Repositories share the UoW's session
- Services coordinate ledger, holds and audit log through one UoW so an
  operation is all-or-nothing
"""

from __future__ import annotations

import abc
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from typing import TYPE_CHECKING, Callable

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.exception.exceptions import ConflictError, CustomBaseError, TransientError
from src.platform.logging.loguru_io import Logger


if TYPE_CHECKING:
    from src.service.inventory.app.interface.i_inventory_hold_repo import IInventoryHoldRepo
    from src.service.inventory.app.interface.i_inventory_transaction_repo import (
        IInventoryTransactionRepo,
    )
    from src.service.inventory.app.interface.i_ticket_inventory_repo import (
        ITicketInventoryRepo,
    )


def translate_persistence_error(error: BaseException) -> CustomBaseError | None:
    """
    Map a driver/pool failure onto the error taxonomy, None when it is not one

    - IntegrityError (duplicate key)                  -> ConflictError
    - OperationalError, InterfaceError, pool timeout,
      invalidated connection, socket errors           -> TransientError (safe to retry)

    Anything else (ProgrammingError, DataError, ...) is a bug and stays as is.
    """
    if isinstance(error, IntegrityError):
        return ConflictError(f'Conflicting write rejected by the store: {error.orig}')
    if isinstance(error, (OperationalError, InterfaceError, PoolTimeoutError, OSError)):
        return TransientError(f'Inventory store unavailable: {error}')
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return TransientError(f'Inventory store connection lost: {error}')
    return None


class AbstractUnitOfWork(abc.ABC):
    """
    Abstract Unit of Work for the Inventory Service

    Leaving the context without commit() rolls back every staged write.
    Persistence failures raised inside the context or by commit() leave it
    translated (see translate_persistence_error).

    Usage:
        async with uow_factory() as uow:
            inventory = await uow.inventory_repo.get(ticket_type_id=...)
            await uow.inventory_repo.compare_and_swap(...)
            await uow.transaction_repo.append(...)
            await uow.commit()
    """

    inventory_repo: ITicketInventoryRepo
    hold_repo: IInventoryHoldRepo
    transaction_repo: IInventoryTransactionRepo

    async def __aenter__(self) -> AbstractUnitOfWork:
        return self

    async def __aexit__(self, exc_type, exc, tb):
        try:
            await self.rollback()
        except Exception as rollback_error:
            translated = translate_persistence_error(rollback_error)
            if translated is None:
                raise
            # The body's own error, if any, is the one worth reporting
            Logger.base.warning(f'[UOW] Rollback failed: {rollback_error}')
            if exc is None:
                raise translated from rollback_error

        if exc is not None:
            translated = translate_persistence_error(exc)
            if translated is not None:
                raise translated from exc

    async def commit(self):
        """Commit the transaction"""
        try:
            await self._commit()
        except Exception as e:
            translated = translate_persistence_error(e)
            if translated is None:
                raise
            Logger.base.warning(f'[UOW] Commit failed: {e}')
            raise translated from e

    @abc.abstractmethod
    async def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def rollback(self) -> None:
        raise NotImplementedError


UnitOfWorkFactory = Callable[[], AbstractUnitOfWork]


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    SQLAlchemy implementation of Unit of Work

    A fresh session is opened per context entry; the factory is
    `Database.session` injected through the container.
    """

    def __init__(
        self, *, session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]]
    ) -> None:
        self._session_factory = session_factory
        self._exit_stack: AsyncExitStack | None = None
        self.session: AsyncSession | None = None

    async def __aenter__(self):
        from src.service.inventory.driven_adapter.repo.inventory_hold_repo_impl import (
            InventoryHoldRepoImpl,
        )
        from src.service.inventory.driven_adapter.repo.inventory_transaction_repo_impl import (
            InventoryTransactionRepoImpl,
        )
        from src.service.inventory.driven_adapter.repo.ticket_inventory_repo_impl import (
            TicketInventoryRepoImpl,
        )

        self._exit_stack = AsyncExitStack()
        self.session = await self._exit_stack.enter_async_context(self._session_factory())

        # Create repositories with shared session
        self.inventory_repo = TicketInventoryRepoImpl(session=self.session)
        self.hold_repo = InventoryHoldRepoImpl(session=self.session)
        self.transaction_repo = InventoryTransactionRepoImpl(session=self.session)

        return await super().__aenter__()

    async def __aexit__(self, exc_type, exc, tb):
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            if self._exit_stack is not None:
                await self._exit_stack.aclose()
                self._exit_stack = None
                self.session = None

    async def _commit(self):
        if self.session is None:
            raise RuntimeError('commit() called outside of the unit of work context')
        await self.session.commit()

    async def rollback(self) -> None:
        if self.session is not None:
            await self.session.rollback()
