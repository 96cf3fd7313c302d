"""
Settings read from the environment or a local .env file.
"""

import logging
from pathlib import Path

from decouple import config

HOST = config("SAHAAY_HOST", default="0.0.0.0")
PORT = config("PORT", default=3000, cast=int)

# Origin of the dashboard frontend, allowed through CORS
FRONTEND_URL = config("FRONTEND_URL", default="http://localhost:5173")

LOG_LEVEL = config("SAHAAY_LOG_LEVEL", default="INFO")

SEED_SAMPLE_DATA = config("SAHAAY_SEED_SAMPLE_DATA", default=True, cast=bool)
SAMPLE_DATA_PATH = Path(
    config(
        "SAHAAY_SAMPLE_DATA",
        default=str(Path(__file__).parent / "sample_data.json"),
    )
)

# Maximum resources attached automatically when an incident is reported
AUTO_DISPATCH_LIMIT = 2

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
