import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


# =========================
# Persistencia por entorno (con fallback local SOLO para desarrollo)
# =========================
def _pick_data_dir() -> Path:
    candidates = []
    env = os.getenv("DATA_DIR")
    if env:
        candidates.append(Path(env))
    candidates += [Path("/data"), Path.cwd() / "data"]

    for p in candidates:
        try:
            p.mkdir(parents=True, exist_ok=True)
            t = p / ".rwtest"
            t.write_text("ok")
            t.unlink(missing_ok=True)
            return p
        except OSError:
            continue
    return Path.cwd()


DATA_DIR = _pick_data_dir()
DEFAULT_SQLITE = f"sqlite:///{(DATA_DIR / 'earnings.db').as_posix()}"
DB_URL = os.getenv("DATABASE_URL", DEFAULT_SQLITE)

APP_TITLE = os.getenv("APP_TITLE", "Resumen de ganancias")
APP_TZ = os.getenv("APP_TZ", "Europe/Prague")
CURRENCY = os.getenv("CURRENCY", "Kč")
SESSION_TTL_MINUTES = int(os.getenv("SESSION_TTL_MINUTES", str(60 * 24 * 7)))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CHART_DAYS = 7


def hosted_without_postgres(url: str = DB_URL) -> bool:
    """True on a hosting platform (Render / HF Spaces / Streamlit Cloud) still pointed at SQLite."""
    hosted = ("RENDER" in os.environ or "SPACE_ID" in os.environ
              or os.getenv("STREAMLIT_RUNTIME") == "cloud")
    return hosted and url.startswith("sqlite")


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
