"""
Event-driven entry point for SCIM User Sync.

The event selects the CSV source: {"bucket": ..., "file": ...} reads an S3
object, {"data": ...} uses inline CSV text and {"file": ...} alone reads a
local path. Directory settings come from the environment.
"""

import logging
from typing import Dict, Any

from scim_user_sync.main import SyncApplication
from scim_user_sync.sources import SourceError

logger = logging.getLogger(__name__)


def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """
    Run one sync for an invocation event.

    Returns:
        Summary dictionary with the completion message and counts

    Raises:
        SourceError: If the event names no CSV source
        ConfigurationError, TransportError: Propagated so the invocation fails
    """
    event = event or {}
    data = event.get('data')
    file = event.get('file')
    bucket = event.get('bucket')

    if data is None and not file:
        raise SourceError("Event must contain either 'data' or 'file' (with optional 'bucket')")

    application = SyncApplication()
    summary = application.execute(file=file, bucket=bucket, data=data)

    if not summary.all_succeeded:
        logger.warning(f"Sync completed with {len(summary.failures)} failed operation(s)")

    return summary.to_dict()
