# Flask application: photo upload -> Gemini -> Google Sheets, plus read-back.
import logging
import os
import tempfile
from contextlib import contextmanager

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from .config import Settings
from .errors import BodylogError, InputError, RetrievalError, ValidationError
from .extraction import DEFAULT_MIME_TYPE, MetricExtractor
from .sheets import SheetStore, log_record, now

logger = logging.getLogger(__name__)

UPLOAD_FIELDS = ('photo', 'image')


@contextmanager
def saved_upload(file_storage, directory):
    """Save the upload to a temp file that is removed however the block exits."""
    fd, path = tempfile.mkstemp(prefix='upload-', dir=directory)
    os.close(fd)
    try:
        file_storage.save(path)
        yield path
    finally:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def _uploaded_file():
    for field in UPLOAD_FIELDS:
        file_storage = request.files.get(field)
        if file_storage is not None and file_storage.filename:
            return file_storage
    raise InputError("No image file found.")


def _error_response(error, **extra):
    body = {"error": error.public_message}
    body.update(extra)
    return jsonify(body), error.status_code


def create_app(settings=None, extractor=None, store=None, clock=None):
    settings = settings or Settings.from_env()
    extractor = extractor or MetricExtractor(settings)
    store = store or SheetStore(settings)
    clock = clock or (lambda: now(settings.timezone))

    app = Flask(__name__)
    CORS(app)
    app.extensions['bodylog'] = {
        'settings': settings,
        'extractor': extractor,
        'store': store,
        'clock': clock,
    }

    @app.route('/', methods=['GET'])
    def health_check():
        return jsonify({"status": "ok", "message": "Backend is running!"})

    @app.route('/upload', methods=['POST'])
    @app.route('/api/upload', methods=['POST'])
    def upload_handler():
        stage, parsed = 'extract', None
        try:
            file_storage = _uploaded_file()
            mime_type = file_storage.mimetype
            if not mime_type or not mime_type.startswith('image/'):
                mime_type = DEFAULT_MIME_TYPE

            with saved_upload(file_storage, settings.upload_dir) as path:
                with open(path, 'rb') as f:
                    image_bytes = f.read()
                parsed = extractor.extract(image_bytes, mime_type)
                stage = 'append'
                row = log_record(store, parsed, clock())

            return jsonify({
                "message": "Values extracted + logged to spreadsheet!",
                "parsed": parsed,
                "row": row,
            })

        except InputError as e:
            logger.info("Rejected upload: %s", e)
            return _error_response(e)
        except ValidationError as e:
            logger.error("Extracted record rejected: %s", e)
            return _error_response(e, stage=stage, missing=e.missing, mistyped=e.mistyped)
        except BodylogError as e:
            if stage == 'append':
                # Extracted but not logged: hand the values back so they are not lost.
                logger.error("Append failed after extraction: %s", e)
                return _error_response(e, stage=stage, parsed=parsed)
            logger.error("Extraction failed: %s", e)
            return _error_response(e, stage=stage)
        except Exception:
            logger.exception("Unexpected error while processing upload")
            body = {"error": "Failed to process image.", "stage": stage}
            if stage == 'append':
                body["parsed"] = parsed
            return jsonify(body), 500

    @app.route('/data', methods=['GET'])
    @app.route('/api/data', methods=['GET'])
    def data_handler():
        try:
            return jsonify({"rows": store.read_rows()})
        except RetrievalError as e:
            logger.error("%s", e)
            return _error_response(e)
        except Exception:
            logger.exception("Unexpected error while reading sheet")
            return jsonify({"error": RetrievalError.public_message}), 500

    @app.cli.command('init-sheet')
    def init_sheet():
        """Write the column header row to the top of the sheet."""
        current_app.extensions['bodylog']['store'].write_header()
        print(f"Header written to {settings.sheet_name}.")

    return app
