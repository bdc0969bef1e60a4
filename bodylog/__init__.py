"""Scale-photo body metrics, extracted with Gemini and logged to Google Sheets."""

__version__ = "0.1.0"
