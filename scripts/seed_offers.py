import argparse

from app.core.logging_config import setup_logging
from app.core.settings import get_settings
from app.verticals.offers.storage.factory import build_store
from app.verticals.offers.storage.seed import DEFAULT_SEED_PATH, load_seed, seed_store


def main():
    parser = argparse.ArgumentParser(description="Seed the offer store with demo data")
    parser.add_argument("--file", default=str(DEFAULT_SEED_PATH), help="YAML fixture")
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    # memory:// would be gone when this process exits
    if settings.STORE_URL.startswith("memory://"):
        print("STORE_URL is memory:// - seed from inside the running app instead.")
        return

    store = build_store(settings)
    added = seed_store(store, load_seed(args.file))
    print("Seeded", settings.STORE_URL, added)


if __name__ == "__main__":
    main()
