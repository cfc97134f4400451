"""
CSV user sources.

Reads the user CSV from a local file, an S3 object or inline text and parses
it into rows keyed by the header line.
"""

import csv
import io
import logging
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from scim_user_sync.records import REQUIRED_FIELDS

logger = logging.getLogger(__name__)


class SourceError(Exception):
    """Raised when the CSV source cannot be read or parsed."""
    pass


def parse_csv(text: str, required_columns: Sequence[str] = ()) -> List[Dict[str, str]]:
    """
    Parse CSV text into rows.

    The first line holds the column names. Column names and values are
    trimmed, blank lines are skipped and a leading UTF-8 BOM is ignored.
    Rows shorter than the header are padded with empty values.

    Args:
        text: CSV text
        required_columns: Column names the header must contain

    Raises:
        SourceError: If the text is not valid CSV, the header lacks a
            required column or a row has more values than the header
    """
    logger.info("Parsing CSV file.")

    if text.startswith('\ufeff'):
        text = text[1:]

    try:
        reader = csv.reader(io.StringIO(text))
        rows = [(reader.line_num, row) for row in reader if any(cell.strip() for cell in row)]
    except csv.Error as e:
        raise SourceError(f"Error parsing CSV file: {e}")

    if not rows:
        if required_columns:
            raise SourceError("CSV file has no header line")
        return []

    headers = [header.strip() for header in rows[0][1]]
    missing = [column for column in required_columns if column not in headers]
    if missing:
        raise SourceError(f"CSV header {headers} is missing column(s) {', '.join(missing)}")

    records = []
    for line_num, line in rows[1:]:
        if any(cell.strip() for cell in line[len(headers):]):
            raise SourceError(
                f"CSV line {line_num} has {len(line)} value(s) but the header has {len(headers)} column(s)")
        record = {}
        for index, header in enumerate(headers):
            record[header] = line[index].strip() if index < len(line) else ''
        records.append(record)

    logger.debug(f"Parsed {len(records)} CSV row(s) with columns {headers}")
    return records


def read_local_file(path: str) -> str:
    """Read a CSV file from the local filesystem."""
    logger.info("Getting local file.")

    try:
        with open(path, 'r', newline='', encoding='utf-8-sig') as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SourceError(f"Error getting local file {path}: {e}")


def read_s3_object(bucket: str, key: str, client: Optional[Any] = None) -> str:
    """
    Read a CSV object from S3.

    Args:
        bucket: Bucket name
        key: Object key
        client: Optional boto3 S3 client; a default one is created otherwise
    """
    logger.info("Getting S3 file.")

    try:
        s3 = client or boto3.client('s3')
        response = s3.get_object(Bucket=bucket, Key=key)
        return response['Body'].read().decode('utf-8-sig')
    except (BotoCoreError, ClientError) as e:
        raise SourceError(f"Error getting S3 file s3://{bucket}/{key}: {e}")
    except UnicodeDecodeError as e:
        raise SourceError(f"S3 file s3://{bucket}/{key} is not UTF-8 text: {e}")


def load_rows(file: Optional[str] = None, bucket: Optional[str] = None,
              data: Optional[str] = None, s3_client: Optional[Any] = None) -> List[Dict[str, str]]:
    """
    Load CSV rows from whichever source is given.

    Inline data takes precedence, then an S3 object when a bucket is given,
    then a local file.

    Raises:
        SourceError: If no source is given, the source cannot be read or
            its header lacks a required user column
    """
    if data is not None:
        text = data
    elif bucket:
        if not file:
            raise SourceError("An S3 source needs both a bucket and a file key")
        text = read_s3_object(bucket, file, s3_client)
    elif file:
        text = read_local_file(file)
    else:
        raise SourceError("No CSV source given: provide a file, a bucket and file, or inline data")

    return parse_csv(text, REQUIRED_FIELDS)
