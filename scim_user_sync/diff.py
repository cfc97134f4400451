"""
Diff between the directory's users and the CSV users.

Users are matched on the lower-cased local email against the lower-cased
remote userName. No other attribute takes part in matching.
"""

import logging
from typing import List, NamedTuple, Sequence

from scim_user_sync.records import LocalUserRecord, RemoteUserRecord

logger = logging.getLogger(__name__)


class UserDiff(NamedTuple):
    to_create: List[LocalUserRecord]
    to_delete: List[RemoteUserRecord]


def compute_diff(remote: Sequence[RemoteUserRecord], local: Sequence[LocalUserRecord]) -> UserDiff:
    """
    Partition the two user collections into creation and deletion work.

    A local record is created when its key is absent from the remote keys, a
    remote record is deleted when its key is absent from the local keys.
    Input order is preserved and duplicate local emails are all kept, so the
    directory decides which of them wins.

    Args:
        remote: Users currently in the directory
        local: Users described by the CSV

    Returns:
        UserDiff of records to create and records to delete
    """
    remote_keys = {user.matching_key for user in remote}
    local_keys = {user.matching_key for user in local}

    to_create = [user for user in local if user.matching_key not in remote_keys]
    to_delete = [user for user in remote if user.matching_key not in local_keys]

    logger.debug(f"Changes needed: {len(to_create)} to create, {len(to_delete)} to delete "
                 f"({len(remote)} remote, {len(local)} local)")

    return UserDiff(to_create, to_delete)
