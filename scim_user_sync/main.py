"""
Main entry point for SCIM User Sync.

This module wires configuration, logging, the CSV source, the directory
client and the reconciler into one sync run, and exposes the command-line
interface.
"""

import sys
import asyncio
import logging
from typing import Dict, Any, List, Optional

from scim_user_sync.config import load_config, ConfigurationError
from scim_user_sync.logging_setup import setup_logging
from scim_user_sync.records import LocalUserRecord, SyncSummary
from scim_user_sync.reconciler import Reconciler
from scim_user_sync.scim_client import DirectoryClient, TransportError
from scim_user_sync.sources import load_rows, SourceError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_DIRECTORY_ERROR = 3
EXIT_SOURCE_ERROR = 4
EXIT_UNEXPECTED_ERROR = 5


class SyncApplication:
    """
    Runs one sync pass from a CSV source to a SCIM directory.

    Handles configuration, logging and error-to-exit-code mapping around the
    reconciler.
    """

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None,
                 s3_client: Optional[Any] = None, transport=None):
        """
        Initialize sync application.

        Args:
            config_path: Path to configuration file
            overrides: Dotted-key configuration overrides (command-line options)
            s3_client: Optional boto3 S3 client for bucket sources
            transport: Optional httpx transport for the directory client
        """
        self.config_path = config_path
        self.overrides = overrides
        self.s3_client = s3_client
        self.transport = transport
        self.config = None

    def load_configuration(self) -> Dict[str, Any]:
        """Load configuration and set up logging."""
        if self.config is None:
            self.config = load_config(self.config_path, self.overrides)
            setup_logging(self.config.get('logging'))
        return self.config

    def execute(self, file: Optional[str] = None, bucket: Optional[str] = None,
                data: Optional[str] = None) -> SyncSummary:
        """
        Run a sync and return its summary.

        The source arguments default to the configured source.

        Raises:
            ConfigurationError: If configuration is invalid
            SourceError: If the CSV cannot be read
            TransportError: If the directory user list cannot be retrieved
        """
        config = self.load_configuration()
        source = config.get('source', {})
        if data is None:
            file = file or source.get('file')
            bucket = bucket or source.get('bucket')

        return asyncio.run(self._sync(file, bucket, data))

    async def _sync(self, file, bucket, data) -> SyncSummary:
        directory = self.config['directory']

        async with DirectoryClient(
            directory['endpoint'],
            directory['token'],
            timeout=directory['timeout'],
            verify_ssl=directory['verify_ssl'],
            transport=self.transport,
        ) as client:
            # The listing and the CSV load do not depend on each other
            remote, rows = await asyncio.gather(
                client.list_users(),
                asyncio.to_thread(load_rows, file, bucket, data, self.s3_client),
                return_exceptions=True,
            )
            for result in (remote, rows):
                if isinstance(result, BaseException):
                    raise result

            local = self._build_local_records(rows)

            reconciler = Reconciler(client, self.config['sync']['max_concurrency'])
            return await reconciler.reconcile(remote, local)

    def _build_local_records(self, rows: List[Dict[str, str]]) -> List[LocalUserRecord]:
        logger.debug(f"Read {len(rows)} CSV row(s)")
        return [LocalUserRecord.from_row(row) for row in rows]

    def run(self, file: Optional[str] = None, bucket: Optional[str] = None,
            data: Optional[str] = None) -> int:
        """
        Run the complete synchronization process.

        Returns:
            Exit code (0 when every operation succeeded, non-zero otherwise)
        """
        try:
            summary = self.execute(file, bucket, data)
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            return EXIT_CONFIG_ERROR
        except TransportError as e:
            logger.error(f"Directory error, aborting sync: {e}")
            return EXIT_DIRECTORY_ERROR
        except SourceError as e:
            logger.error(f"CSV source error, aborting sync: {e}")
            return EXIT_SOURCE_ERROR
        except Exception as e:
            logger.error(f"Unexpected error: {e}", exc_info=True)
            return EXIT_UNEXPECTED_ERROR

        if not summary.all_succeeded:
            logger.warning(f"Sync completed with {len(summary.failures)} failed operation(s)")
            return EXIT_PARTIAL_FAILURE
        return EXIT_OK


def build_parser():
    """Build the command-line argument parser."""
    import argparse

    parser = argparse.ArgumentParser(
        prog='scim-user-sync',
        description='Sync users from a CSV file to a SCIM directory'
    )
    parser.add_argument('--file', '-f', help='CSV file containing users to sync')
    parser.add_argument('--bucket', '-b', help='S3 bucket holding the CSV file')
    parser.add_argument('--endpoint', '-e', help='SCIM endpoint (env: SCIM_ENDPOINT or endpoint)')
    parser.add_argument('--token', '-t', help='SCIM bearer token (env: SCIM_TOKEN or token)')
    parser.add_argument('--log', '-l', help='Logging level (error/warning/info/debug)')
    parser.add_argument('--config', '-c', help='Path to configuration file')
    parser.add_argument('--max-concurrency', type=int,
                        help='Maximum number of concurrent directory requests')
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)

    overrides = {
        'directory.endpoint': args.endpoint,
        'directory.token': args.token,
        'logging.level': args.log,
        'sync.max_concurrency': args.max_concurrency,
        'source.file': args.file,
        'source.bucket': args.bucket,
    }

    application = SyncApplication(config_path=args.config, overrides=overrides)
    sys.exit(application.run())


if __name__ == "__main__":
    main()
