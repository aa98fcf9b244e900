from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .utils import apply_password, resolve_sqlite_url

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[2]


def make_engine(database_url: str, password: Optional[str] = None, echo: bool = False) -> Engine:
    url = apply_password(resolve_sqlite_url(database_url, ROOT_DIR), password)
    return create_engine(
        url,
        echo=echo,
        future=True,
        # Drop dead connections to hosted Postgres instead of failing the next read
        pool_pre_ping=not url.startswith("sqlite"),
    )
