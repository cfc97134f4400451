"""
SCIM directory API client.

This module wraps the three directory operations used by a sync run (list,
create and delete users) and translates HTTP outcomes into typed errors.
Every call is a single request; nothing is retried.
"""

import logging
from typing import Dict, Any, List, Optional

import httpx

from scim_user_sync.records import LocalUserRecord, RemoteUserRecord, RecordValidationError

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """Base exception for directory API errors."""
    pass


class TransportError(DirectoryError):
    """Raised when the user listing cannot be retrieved."""

    def __init__(self, message: str, status: Optional[int] = None, cause: Optional[BaseException] = None):
        self.status = status
        self.cause = cause
        super().__init__(message)


class CreateError(DirectoryError):
    """Raised when a user could not be created."""

    def __init__(self, record: LocalUserRecord, cause: Any = None, status: Optional[int] = None):
        self.record = record
        self.cause = cause
        self.status = status
        super().__init__(f"Error creating user {record.as_row()}: {cause}")


class ConflictError(CreateError):
    """Raised when the directory already holds a user with the same userName."""

    def __init__(self, record: LocalUserRecord):
        super().__init__(record, 'conflicting user', status=409)


class DeleteError(DirectoryError):
    """Raised when a user could not be deleted."""

    def __init__(self, user_id: str, cause: Any = None, status: Optional[int] = None):
        self.user_id = user_id
        self.cause = cause
        self.status = status
        super().__init__(f"Error deleting user {user_id}: {cause}")


class NotFoundError(DeleteError):
    """Raised when the user to delete does not exist."""

    def __init__(self, user_id: str):
        super().__init__(user_id, 'the specified user does not exist', status=404)


def build_user_payload(record: LocalUserRecord) -> Dict[str, Any]:
    """Build the SCIM user resource posted for a local record."""
    return {
        'userName': record.email,
        'name': {
            'familyName': record.family_name,
            'givenName': record.given_name,
        },
        'displayName': record.display_name,
        'emails': [
            {
                'value': record.email,
                'type': 'work',
                'primary': True,
            }
        ],
        'active': True,
    }


class DirectoryClient:
    """
    Async client for a bearer-token authenticated SCIM directory.

    Use as an async context manager so the underlying connection pool is
    closed when the run finishes.
    """

    def __init__(self, endpoint: str, token: str, timeout: float = 30.0,
                 verify_ssl: bool = True, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize directory client.

        Args:
            endpoint: SCIM base URL; user resources live under {endpoint}/Users
            token: Bearer token sent with every request
            timeout: Per-request timeout in seconds
            verify_ssl: Whether to verify the server certificate
            transport: Optional httpx transport, used by tests
        """
        self.endpoint = endpoint.rstrip('/')
        self.auth_headers = {'Authorization': f"Bearer {token}"}

        if not verify_ssl:
            logger.warning(f"SSL verification disabled for {self.endpoint}")

        self._client = httpx.AsyncClient(
            headers={**self.auth_headers, 'Accept': 'application/scim+json, application/json'},
            timeout=timeout,
            verify=verify_ssl,
            transport=transport,
        )

    def _users_url(self, user_id: Optional[str] = None) -> str:
        if user_id is None:
            return f"{self.endpoint}/Users"
        return f"{self.endpoint}/Users/{user_id}"

    async def list_users(self) -> List[RemoteUserRecord]:
        """
        Get every user in the directory.

        The directory is expected to return the complete set in one response.

        Returns:
            Remote user records; resources without id or userName are skipped

        Raises:
            TransportError: On network failure, non-2xx status or malformed body
        """
        logger.info("Getting users")

        try:
            response = await self._client.get(self._users_url())
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(f"Error getting users: HTTP {e.response.status_code}",
                                 status=e.response.status_code, cause=e)
        except httpx.HTTPError as e:
            raise TransportError(f"Error getting users: {e}", cause=e)
        except ValueError as e:
            raise TransportError(f"Invalid JSON response when getting users: {e}", cause=e)

        if not isinstance(body, dict) or not isinstance(body.get('Resources', []), list):
            raise TransportError("Unexpected user list response shape", status=response.status_code)

        total = body.get('totalResults')
        if 'Resources' not in body and total != 0:
            # Only an explicitly empty directory may omit Resources
            raise TransportError(f"User list response has no Resources (totalResults: {total})",
                                 status=response.status_code)

        resources = body.get('Resources', [])
        logger.info(f"Got {len(resources) if total is None else total} user(s)")
        if total is not None and total != len(resources):
            logger.warning(f"Directory reported {total} user(s) but returned {len(resources)}; "
                           f"the user list may be incomplete")

        users = []
        for resource in resources:
            try:
                users.append(RemoteUserRecord.from_resource(resource))
            except RecordValidationError as e:
                logger.warning(f"Skipping directory user missing {e.field}: {resource}")
        return users

    async def create_user(self, record: LocalUserRecord) -> str:
        """
        Create a user from a local record.

        Returns:
            The directory-assigned user id

        Raises:
            ConflictError: If the user already exists (HTTP 409)
            CreateError: On any other failure
        """
        logger.debug(f"Creating user {record.email}")

        try:
            response = await self._client.post(self._users_url(), json=build_user_payload(record))
        except httpx.HTTPError as e:
            raise CreateError(record, e)

        if response.status_code == 409:
            raise ConflictError(record)
        if response.is_error:
            raise CreateError(record, f"HTTP {response.status_code}", status=response.status_code)

        try:
            user_id = response.json().get('id')
        except (ValueError, AttributeError) as e:
            raise CreateError(record, f"Invalid create response: {e}", status=response.status_code)

        if not user_id:
            raise CreateError(record, 'Create response is missing id', status=response.status_code)
        return str(user_id)

    async def delete_user(self, user_id: str) -> None:
        """
        Delete a user by directory id.

        Raises:
            NotFoundError: If the user does not exist (HTTP 404)
            DeleteError: On any other failure
        """
        logger.debug(f"Deleting user {user_id}")

        try:
            response = await self._client.delete(self._users_url(user_id))
        except httpx.HTTPError as e:
            raise DeleteError(user_id, e)

        if response.status_code == 404:
            raise NotFoundError(user_id)
        if response.is_error:
            raise DeleteError(user_id, f"HTTP {response.status_code}", status=response.status_code)

    async def close(self):
        """Close the HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
