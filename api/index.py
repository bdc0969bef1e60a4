# Serverless entry point for Vercel; the platform serves the module-level `app`.
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bodylog.app import create_app  # noqa: E402
from bodylog.config import Settings  # noqa: E402

# Uploads can only be written under /tmp on the serverless runtime.
os.environ.setdefault('UPLOAD_DIR', '/tmp')

settings = Settings.from_env()
logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

app = create_app(settings)
