import argparse

from sqlalchemy import MetaData, insert

from amigosecreto.config import load_settings
from amigosecreto.db.engine import make_engine
from amigosecreto.models import CAPITALIZED, LOWERCASE, build_participant_table

SAMPLE_NAMES = ["Ana", "Bea", "Cid", "Duda", "Edu", "Fabi"]


def main() -> None:
    """Reset the development store and seed sample participants."""
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--lowercase", action="store_true", help="use the all-lowercase schema")
    parser.add_argument("names", nargs="*", default=SAMPLE_NAMES)
    args = parser.parse_args()

    settings = load_settings()
    if not settings.store_configured:
        raise SystemExit("DB_URL is not set")
    engine = make_engine(settings.db_url, password=settings.db_password)

    convention = LOWERCASE if args.lowercase else CAPITALIZED
    metadata = MetaData()
    participants = build_participant_table(convention, metadata)

    # Drop and recreate so every run starts with nobody drawn.
    metadata.drop_all(engine)
    metadata.create_all(engine)

    with engine.begin() as conn:
        conn.execute(
            insert(participants),
            [{convention.name: name, convention.has_secret: False} for name in args.names],
        )
    print(f"Seeded {len(args.names)} participants into {convention.table!r}")


if __name__ == "__main__":
    main()
