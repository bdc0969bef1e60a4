from datetime import datetime
from types import SimpleNamespace

import pytest

from bodylog.config import Settings
from bodylog.extraction import MetricExtractor
from bodylog.sheets import SheetStore

FENCED_RESPONSE = (
    '```json\n'
    '{"bodyAge": 30, "height": 170, "weight": 68.4, "bmi": 23.7, "bodyType": "Standard", '
    '"fat": 18.2, "water": 55.1, "muscle": 52.3, "bone": 2.8, "entrails": 6, "bmr": 1580}\n'
    '```'
)

FIXED_INSTANT = datetime(2026, 10, 19, 7, 5)


class FakeRequest:
    def __init__(self, run):
        self.run = run
        self.num_retries = None

    def execute(self, num_retries=0):
        self.num_retries = num_retries
        return self.run()


class FakeValues:
    """Just enough of spreadsheets().values() to append, read and update rows."""

    def __init__(self, sheet):
        self.sheet = sheet

    def append(self, spreadsheetId, range, valueInputOption, insertDataOption, body):
        self.sheet.calls.append(('append', spreadsheetId, range, valueInputOption, insertDataOption, body))

        def run():
            if self.sheet.fail_with is not None:
                raise self.sheet.fail_with
            self.sheet.rows.extend(body['values'])
            return {'updates': {'updatedRange': f"{range}!A{len(self.sheet.rows)}:M{len(self.sheet.rows)}"}}
        return FakeRequest(run)

    def get(self, spreadsheetId, range):
        self.sheet.calls.append(('get', spreadsheetId, range))

        def run():
            if self.sheet.fail_with is not None:
                raise self.sheet.fail_with
            if not self.sheet.rows:
                return {'range': range}
            # The API hands every cell back as its formatted string.
            return {'range': range, 'values': [[str(c) for c in row] for row in self.sheet.rows]}
        return FakeRequest(run)

    def update(self, spreadsheetId, range, valueInputOption, body):
        self.sheet.calls.append(('update', spreadsheetId, range, valueInputOption, body))

        def run():
            self.sheet.rows[:1] = body['values']
            return {'updatedRange': range}
        return FakeRequest(run)


class FakeSheetsService:
    def __init__(self):
        self.rows = []
        self.calls = []
        self.fail_with = None

    def spreadsheets(self):
        return SimpleNamespace(values=lambda: FakeValues(self))


class FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate_content(self, model, contents):
        self.calls.append((model, contents))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class FakeGenaiClient:
    def __init__(self, text=None, error=None):
        self.models = FakeModels(text, error)


@pytest.fixture
def settings(tmp_path):
    return Settings(gemini_api_key='test-key', spreadsheet_id='sheet-123', upload_dir=str(tmp_path))


@pytest.fixture
def sheets_service():
    return FakeSheetsService()


@pytest.fixture
def store(settings, sheets_service):
    return SheetStore(settings, service_factory=lambda: sheets_service)


@pytest.fixture
def genai_client():
    return FakeGenaiClient(text=FENCED_RESPONSE)


@pytest.fixture
def extractor(settings, genai_client):
    return MetricExtractor(settings, client=genai_client)
