from __future__ import annotations

import argparse

from sqlalchemy import MetaData, inspect

from amigosecreto.config import load_settings
from amigosecreto.db.engine import make_engine
from amigosecreto.models import CAPITALIZED, LOWERCASE, build_participant_table

CONVENTIONS = {c.label: c for c in (CAPITALIZED, LOWERCASE)}


def create_tables(engine, convention_label: str = CAPITALIZED.label) -> None:
    """Create the participant table under the requested naming convention."""
    metadata = MetaData()
    build_participant_table(CONVENTIONS[convention_label], metadata)
    metadata.create_all(engine)


def print_tables(engine) -> None:
    """Inspect the configured database and print all table names."""
    insp = inspect(engine)
    print("Current tables:", ", ".join(sorted(insp.get_table_names())))


def main() -> None:
    """Create the participant table (capitalized by default) and report the schema."""
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--convention", choices=sorted(CONVENTIONS), default=CAPITALIZED.label)
    args = parser.parse_args()

    settings = load_settings()
    if not settings.store_configured:
        raise SystemExit("DB_URL is not set")
    engine = make_engine(settings.db_url, password=settings.db_password)
    create_tables(engine, args.convention)
    print_tables(engine)


if __name__ == "__main__":
    main()
