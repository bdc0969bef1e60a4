# Row projector and the Google Sheets store the rows are appended to.
import json
import logging
from collections import namedtuple
from datetime import datetime
from zoneinfo import ZoneInfo

import httplib2
from google.auth import exceptions as auth_exceptions
from googleapiclient.errors import HttpError

from .errors import AuthError, RetrievalError, StoreError, TransientStoreError
from .extraction import METRIC_FIELDS

logger = logging.getLogger(__name__)

# Must line up with the header row already in the sheet.
SHEET_HEADER = [
    'Date', 'Time', 'Body Age', 'Height', 'Weight', 'BMI', 'Body Type',
    'Fat', 'Water', 'Muscle', 'Bone', 'Entrails', 'BMR',
]
ROW_WIDTH = len(SHEET_HEADER)

# Fixed English abbreviations so the date does not depend on the host locale.
_MONTHS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
           'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')

TimestampPair = namedtuple('TimestampPair', ['date', 'time'])


def now(timezone=None):
    if timezone:
        return datetime.now(ZoneInfo(timezone))
    return datetime.now()


def format_timestamp(instant):
    """'Oct 19, 2026' and '07:05' for the given instant."""
    date = f"{_MONTHS[instant.month - 1]} {instant.day}, {instant.year}"
    time = f"{instant.hour:02d}:{instant.minute:02d}"
    return TimestampPair(date, time)


def project_row(record, instant):
    stamp = format_timestamp(instant)
    return [stamp.date, stamp.time] + [record.get(name) for name in METRIC_FIELDS]


def _cell(value):
    return '' if value is None else value


class SheetStore:
    """Append-only access to one sheet of one spreadsheet."""

    def __init__(self, settings, credential_provider=None, service_factory=None):
        self.settings = settings
        self.credential_provider = credential_provider or settings.credentials
        self._service_factory = service_factory

    def service(self):
        if self._service_factory is not None:
            return self._service_factory()
        return self.credential_provider.sheets_service(timeout=self.settings.store_timeout)

    @property
    def values(self):
        return self.service().spreadsheets().values()

    def append_row(self, row):
        body = {'values': [[_cell(v) for v in row]]}
        try:
            result = self.values.append(
                spreadsheetId=self.settings.spreadsheet_id,
                range=self.settings.sheet_name,
                valueInputOption='RAW',
                insertDataOption='INSERT_ROWS',
                body=body,
            ).execute(num_retries=self.settings.store_retries)
        except HttpError as e:
            raise _store_error(e) from e
        except auth_exceptions.RefreshError as e:
            raise AuthError(f"Service account rejected: {e}") from e
        except (auth_exceptions.TransportError, httplib2.HttpLib2Error, OSError) as e:
            raise TransientStoreError(f"Spreadsheet unreachable: {e}") from e

        updated = (result or {}).get('updates', {}).get('updatedRange')
        logger.info("Appended row to %s", updated or self.settings.sheet_name)
        return result

    def read_rows(self):
        try:
            result = self.values.get(
                spreadsheetId=self.settings.spreadsheet_id,
                range=self.settings.sheet_name,
            ).execute(num_retries=self.settings.store_retries)
        except (HttpError, auth_exceptions.GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            raise RetrievalError(f"Could not read {self.settings.sheet_name}: {e}") from e
        return result.get('values', [])

    def write_header(self):
        try:
            return self.values.update(
                spreadsheetId=self.settings.spreadsheet_id,
                range=f"{self.settings.sheet_name}!A1",
                valueInputOption='RAW',
                body={'values': [SHEET_HEADER]},
            ).execute(num_retries=self.settings.store_retries)
        except HttpError as e:
            raise _store_error(e) from e


_RATE_LIMIT_REASONS = ('rateLimitExceeded', 'userRateLimitExceeded')


def _error_reasons(e):
    """Reason codes and status from a Google API error body, if it has any."""
    try:
        error = json.loads(e.content.decode('utf-8')).get('error', {})
    except (AttributeError, UnicodeDecodeError, ValueError):
        return set()
    if not isinstance(error, dict):
        return set()
    reasons = {item.get('reason') for item in error.get('errors', []) if isinstance(item, dict)}
    reasons.add(error.get('status'))
    return reasons


def _store_error(e):
    status = int(e.resp.status)
    reasons = _error_reasons(e)
    if status == 429 or status >= 500 or 'RESOURCE_EXHAUSTED' in reasons \
            or reasons.intersection(_RATE_LIMIT_REASONS):
        return TransientStoreError(f"Spreadsheet temporarily failed ({status})")
    if status in (401, 403):
        return AuthError(f"Spreadsheet refused access ({status})")
    return StoreError(f"Spreadsheet append failed ({status})")


def log_record(store, record, instant):
    """Project the record into a row and append it; returns the row as projected."""
    row = project_row(record, instant)
    store.append_row(row)
    return row
