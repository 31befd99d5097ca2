# engine/logconf.py
"""Root logging for CLI runs and the API server: stdout plus one file per day."""

import datetime
import logging
import pathlib
import sys

from bookgen.errors import ConfigError

LOG_DIR = pathlib.Path("outputs") / "logs"
LOG_FORMAT = "%(asctime)s | %(levelname)-5s | %(module)s | %(message)s"
NOISY = ("httpx", "httpcore", "openai")


def init(level: str = "INFO", log_dir: pathlib.Path | None = None) -> pathlib.Path:
    """Configure the root logger and return the file it writes to."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ConfigError(f"Unknown log level {level!r}", issues=[f"Unknown log level {level!r}"])

    log_dir = pathlib.Path(log_dir or LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"bookgen_{datetime.date.today()}.log"
    logging.basicConfig(
        level=numeric,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
        force=True,
    )
    # one line per HTTP request otherwise
    for name in NOISY:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))
    logging.getLogger(__name__).debug("Logging to %s", log_file)
    return log_file
