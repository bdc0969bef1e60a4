# Service-account credential sources for the Sheets API.
import abc
import base64
import binascii
import json
import logging
import os
import threading

import google_auth_httplib2
import httplib2
from google.oauth2 import service_account
from googleapiclient.discovery import build

from .errors import ConfigError

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ['https://www.googleapis.com/auth/spreadsheets']
DEFAULT_TOKEN_URI = 'https://oauth2.googleapis.com/token'

_signed_lock = threading.Lock()


class CredentialProvider(abc.ABC):
    """Produces a signed Sheets client.

    Subclasses only decide where the service-account material comes from;
    building the client is shared. The signed credentials are built once per
    provider so their access token is reused until it expires.
    """

    source = 'unknown'
    _signed = None

    @abc.abstractmethod
    def credentials(self, scopes=SHEETS_SCOPES):
        """Return service-account credentials restricted to `scopes`."""

    def signed_credentials(self):
        with _signed_lock:
            if self._signed is None:
                self._signed = self.credentials(SHEETS_SCOPES)
            return self._signed

    def sheets_service(self, timeout=None):
        # A new Http per call: httplib2.Http is not safe to share between threads.
        http = google_auth_httplib2.AuthorizedHttp(
            self.signed_credentials(), http=httplib2.Http(timeout=timeout))
        return build('sheets', 'v4', http=http, cache_discovery=False)


class FileCredentialProvider(CredentialProvider):
    source = 'file'

    def __init__(self, path):
        self.path = path

    def credentials(self, scopes=SHEETS_SCOPES):
        if not os.path.isfile(self.path):
            raise ConfigError(f"Service account key file not found: {self.path}")
        return service_account.Credentials.from_service_account_file(self.path, scopes=scopes)


class EnvJsonCredentialProvider(CredentialProvider):
    """The whole key JSON held in one environment variable, optionally base64 encoded."""

    source = 'env-json'

    def __init__(self, payload, encoded=False):
        self.payload = payload
        self.encoded = encoded

    def info(self):
        raw = self.payload
        try:
            if self.encoded:
                raw = base64.b64decode(raw).decode('utf-8')
            return json.loads(raw)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise ConfigError(f"Service account JSON could not be decoded: {e}") from e

    def credentials(self, scopes=SHEETS_SCOPES):
        return service_account.Credentials.from_service_account_info(self.info(), scopes=scopes)


class FieldsCredentialProvider(CredentialProvider):
    """Key material split across separate environment variables."""

    source = 'env-fields'

    def __init__(self, client_email, private_key, project_id=None, private_key_id=None,
                 client_id=None, token_uri=DEFAULT_TOKEN_URI):
        self.client_email = client_email
        # Hosting dashboards usually store the PEM with escaped newlines.
        self.private_key = private_key.replace('\\n', '\n')
        self.project_id = project_id
        self.private_key_id = private_key_id
        self.client_id = client_id
        self.token_uri = token_uri or DEFAULT_TOKEN_URI

    def info(self):
        info = {
            'type': 'service_account',
            'client_email': self.client_email,
            'private_key': self.private_key,
            'token_uri': self.token_uri,
        }
        for key in ('project_id', 'private_key_id', 'client_id'):
            value = getattr(self, key)
            if value:
                info[key] = value
        return info

    def credentials(self, scopes=SHEETS_SCOPES):
        return service_account.Credentials.from_service_account_info(self.info(), scopes=scopes)


def provider_from_env(environ=None):
    """Pick the first configured credential source: file, JSON, base64 JSON, fields."""
    env = os.environ if environ is None else environ

    if env.get('GOOGLE_SERVICE_ACCOUNT_FILE'):
        provider = FileCredentialProvider(env['GOOGLE_SERVICE_ACCOUNT_FILE'])
    elif env.get('GOOGLE_SERVICE_ACCOUNT_JSON'):
        provider = EnvJsonCredentialProvider(env['GOOGLE_SERVICE_ACCOUNT_JSON'])
    elif env.get('GOOGLE_SERVICE_KEY_BASE64') or env.get('GOOGLE_CREDENTIALS_BASE64'):
        payload = env.get('GOOGLE_SERVICE_KEY_BASE64') or env.get('GOOGLE_CREDENTIALS_BASE64')
        provider = EnvJsonCredentialProvider(payload, encoded=True)
    elif env.get('GOOGLE_CLIENT_EMAIL') and env.get('GOOGLE_PRIVATE_KEY'):
        provider = FieldsCredentialProvider(
            env['GOOGLE_CLIENT_EMAIL'],
            env['GOOGLE_PRIVATE_KEY'],
            project_id=env.get('GOOGLE_PROJECT_ID'),
            private_key_id=env.get('GOOGLE_PRIVATE_KEY_ID'),
            client_id=env.get('GOOGLE_CLIENT_ID'),
            token_uri=env.get('GOOGLE_TOKEN_URI'),
        )
    else:
        raise ConfigError(
            "No Google service account configured. Set GOOGLE_SERVICE_ACCOUNT_FILE, "
            "GOOGLE_SERVICE_ACCOUNT_JSON, GOOGLE_SERVICE_KEY_BASE64 or "
            "GOOGLE_CLIENT_EMAIL + GOOGLE_PRIVATE_KEY."
        )

    logger.debug("Using %s service account credentials", provider.source)
    return provider
