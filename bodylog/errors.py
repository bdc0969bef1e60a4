# Error taxonomy shared by the extraction and spreadsheet adapters.
# Every class carries the status code and the generic message the HTTP layer returns.


class BodylogError(Exception):
    status_code = 500
    public_message = "Failed to process image."


class ConfigError(BodylogError, ValueError):
    public_message = "Service is not configured."


class InputError(BodylogError):
    status_code = 400
    public_message = "No image file provided."


class ProviderUnavailable(BodylogError):
    """Gemini could not be reached (network failure or timeout)."""


class ProviderError(BodylogError):
    """Gemini answered with an error status or an empty body."""


class MalformedResponse(BodylogError):
    """Gemini's text was not a JSON object even after removing the code fence."""


class ValidationError(BodylogError):
    status_code = 422
    public_message = "Extracted metrics were incomplete."

    def __init__(self, missing=(), mistyped=()):
        self.missing = list(missing)
        self.mistyped = list(mistyped)
        parts = []
        if self.missing:
            parts.append("missing: " + ", ".join(self.missing))
        if self.mistyped:
            parts.append("mistyped: " + ", ".join(self.mistyped))
        super().__init__("; ".join(parts) or "invalid record")


class StoreError(BodylogError):
    public_message = "Failed to log values to spreadsheet."


class AuthError(StoreError):
    """The spreadsheet rejected the service-account credentials."""


class TransientStoreError(StoreError):
    """Rate limit, server error or timeout; the append may succeed later."""


class RetrievalError(BodylogError):
    public_message = "Failed to fetch data from sheet."
