# Local entry point: python index.py, or flask --app index init-sheet
import logging
import os

from dotenv import load_dotenv

from bodylog.app import create_app
from bodylog.config import Settings

load_dotenv()

settings = Settings.from_env()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app(settings)

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 3000))
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG') == '1')
