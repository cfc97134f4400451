"""
User records and per-run result types for SCIM User Sync.

This module maps raw CSV rows into canonical local user records, wraps
directory resources as remote user records, and defines the outcome and
summary values produced by a reconciliation run.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Mapping, Optional, Tuple, Union

# Required CSV columns, in the order they are checked
REQUIRED_FIELDS = ('givenName', 'familyName', 'displayName', 'email')

CREATE = 'create'
DELETE = 'delete'


class RecordValidationError(Exception):
    """Raised or returned when a record is missing required fields."""

    def __init__(self, field: str, record: Mapping[str, Any], missing: Optional[List[str]] = None):
        self.field = field
        self.record = dict(record)
        self.missing = list(missing) if missing else [field]
        super().__init__(f"Missing required field(s) {', '.join(self.missing)} in record {self.record}")


@dataclass
class LocalUserRecord:
    """A user described by one CSV row."""

    given_name: str
    family_name: str
    display_name: str
    email: str
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'LocalUserRecord':
        """Build a record from a raw row. Missing columns become empty strings."""
        def value(column):
            raw = row.get(column)
            return '' if raw is None else str(raw)

        return cls(
            given_name=value('givenName'),
            family_name=value('familyName'),
            display_name=value('displayName'),
            email=value('email'),
        )

    @property
    def matching_key(self) -> str:
        return self.email.lower()

    def as_row(self) -> Dict[str, str]:
        """Return the record keyed by its CSV column names."""
        row = {
            'givenName': self.given_name,
            'familyName': self.family_name,
            'displayName': self.display_name,
            'email': self.email,
        }
        if self.id is not None:
            row['id'] = self.id
        return row

    def missing_fields(self) -> List[str]:
        row = self.as_row()
        return [name for name in REQUIRED_FIELDS if not row[name].strip()]


@dataclass(frozen=True)
class RemoteUserRecord:
    """A user resource as returned by the directory."""

    id: str
    user_name: str
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_resource(cls, resource: Mapping[str, Any]) -> 'RemoteUserRecord':
        """
        Wrap a directory user resource.

        Raises:
            RecordValidationError: If the resource has no id or userName
        """
        for name in ('id', 'userName'):
            raw = resource.get(name)
            if raw is None or not str(raw).strip():
                raise RecordValidationError(name, resource)

        return cls(id=str(resource['id']), user_name=str(resource['userName']),
                   attributes=dict(resource))

    @property
    def matching_key(self) -> str:
        return self.user_name.lower()

    def as_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'userName': self.user_name}


def validate_record(record: LocalUserRecord) -> Optional[RecordValidationError]:
    """
    Check that every required field of a local record is non-blank.

    Returns:
        None when the record is valid, otherwise an error naming the first
        blank field, every blank field, and the full record
    """
    missing = record.missing_fields()
    if not missing:
        return None
    return RecordValidationError(missing[0], record.as_row(), missing)


def normalize(row: Mapping[str, Any]) -> Union[LocalUserRecord, RecordValidationError]:
    """
    Map a raw CSV row to a validated local record.

    This is the eager form of ``LocalUserRecord.from_row`` followed by
    ``validate_record``. A sync run takes the lazy path instead: invalid
    rows still take part in the diff and are counted as failed creations.

    Args:
        row: String-keyed mapping; column order is irrelevant and extra
            columns are ignored

    Returns:
        The record, or the validation error when a required field is blank
    """
    record = LocalUserRecord.from_row(row)
    error = validate_record(record)
    if error is not None:
        # Report the row as given, including any extra columns
        return RecordValidationError(error.field, row, error.missing)
    return record


@dataclass(frozen=True)
class Success:
    kind: str
    record: Union[LocalUserRecord, RemoteUserRecord]
    succeeded = True


@dataclass(frozen=True)
class Failure:
    kind: str
    record: Union[LocalUserRecord, RemoteUserRecord]
    reason: str
    succeeded = False


OperationOutcome = Union[Success, Failure]


@dataclass(frozen=True)
class SyncSummary:
    """Result of one reconciliation run."""

    created: int
    create_attempted: int
    deleted: int
    delete_attempted: int
    failures: Tuple[Failure, ...] = ()

    @classmethod
    def from_outcomes(cls, outcomes: List[OperationOutcome]) -> 'SyncSummary':
        creates = [o for o in outcomes if o.kind == CREATE]
        deletes = [o for o in outcomes if o.kind == DELETE]
        return cls(
            created=sum(1 for o in creates if o.succeeded),
            create_attempted=len(creates),
            deleted=sum(1 for o in deletes if o.succeeded),
            delete_attempted=len(deletes),
            failures=tuple(o for o in outcomes if not o.succeeded),
        )

    @property
    def message(self) -> str:
        return (f"Completed creating {self.created}/{self.create_attempted} "
                f"and deleting {self.deleted}/{self.delete_attempted} user(s).")

    @property
    def all_succeeded(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            'message': self.message,
            'created': self.created,
            'create_attempted': self.create_attempted,
            'deleted': self.deleted,
            'delete_attempted': self.delete_attempted,
            'failures': len(self.failures),
        }
