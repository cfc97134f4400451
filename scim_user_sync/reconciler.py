"""
Reconciler for SCIM User Sync.

This module applies the diff between the directory and the CSV: every
creation and deletion runs concurrently, each one settles into an outcome,
and the outcomes are counted once all of them have finished.
"""

import asyncio
import logging
from typing import Awaitable, List, Optional, Sequence

from scim_user_sync.diff import compute_diff
from scim_user_sync.logging_setup import audit_logger
from scim_user_sync.records import (
    CREATE,
    DELETE,
    Failure,
    LocalUserRecord,
    OperationOutcome,
    RemoteUserRecord,
    Success,
    SyncSummary,
    validate_record,
)
from scim_user_sync.scim_client import (
    ConflictError,
    CreateError,
    DeleteError,
    DirectoryClient,
    NotFoundError,
)

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Reconciles one directory against one CSV snapshot.

    Callers must not run two reconcilers against the same directory at the
    same time; overlapping runs can double-create or double-delete.
    """

    def __init__(self, client: DirectoryClient, max_concurrency: Optional[int] = None):
        """
        Initialize reconciler.

        Args:
            client: Directory client used for every mutation
            max_concurrency: Optional cap on in-flight requests; None means
                every operation is started at once
        """
        self.client = client
        self.max_concurrency = max_concurrency

    async def reconcile(self, remote: Sequence[RemoteUserRecord],
                        local: Sequence[LocalUserRecord]) -> SyncSummary:
        """
        Create missing users and delete users absent from the CSV.

        Individual failures never abort the run; they are counted in the
        returned summary.
        """
        logger.info("Syncing user(s).")

        to_create, to_delete = compute_diff(remote, local)

        operations = [self._create(record) for record in to_create]
        operations += [self._delete(record) for record in to_delete]

        outcomes = await self._gather(operations)

        summary = SyncSummary.from_outcomes(outcomes)
        logger.info(summary.message)
        return summary

    async def _gather(self, operations: List[Awaitable[OperationOutcome]]) -> List[OperationOutcome]:
        if not self.max_concurrency:
            return list(await asyncio.gather(*operations))

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(operation):
            async with semaphore:
                return await operation

        return list(await asyncio.gather(*(bounded(op) for op in operations)))

    async def _create(self, record: LocalUserRecord) -> OperationOutcome:
        logger.info(f"Creating user {record.as_row()}")

        error = validate_record(record)
        if error is not None:
            logger.warning(f"Ignoring user due to invalid field value(s): {error.record}")
            return self._settle(Failure(CREATE, record, str(error)))

        try:
            user_id = await self.client.create_user(record)
        except ConflictError as e:
            logger.error(f"Error creating user {record.as_row()} due to conflicting user.")
            return self._settle(Failure(CREATE, record, str(e)))
        except CreateError as e:
            logger.error(f"Error creating user {record.as_row()}: {e.cause}")
            return self._settle(Failure(CREATE, record, str(e)))
        except Exception as e:
            logger.error(f"Unexpected error creating user {record.as_row()}: {e}", exc_info=True)
            return self._settle(Failure(CREATE, record, str(e)))

        record.id = user_id
        logger.info(f"Created user {user_id} {record.as_row()}")
        return self._settle(Success(CREATE, record))

    async def _delete(self, record: RemoteUserRecord) -> OperationOutcome:
        logger.info(f"Deleting user {record.as_dict()}")

        try:
            await self.client.delete_user(record.id)
        except NotFoundError as e:
            logger.error(f"Error deleting user {record.as_dict()} due to the specified user not existing.")
            return self._settle(Failure(DELETE, record, str(e)))
        except DeleteError as e:
            logger.error(f"Error deleting user {record.as_dict()}: {e.cause}")
            return self._settle(Failure(DELETE, record, str(e)))
        except Exception as e:
            logger.error(f"Unexpected error deleting user {record.as_dict()}: {e}", exc_info=True)
            return self._settle(Failure(DELETE, record, str(e)))

        logger.info(f"Deleted user {record.id} {record.as_dict()}")
        return self._settle(Success(DELETE, record))

    def _settle(self, outcome: OperationOutcome) -> OperationOutcome:
        if isinstance(outcome.record, LocalUserRecord):
            user = outcome.record.email
        else:
            user = outcome.record.user_name
        audit_logger.log_user_operation(outcome.kind, user, outcome.succeeded)
        return outcome
