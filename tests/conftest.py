import os

# database.py builds its engine at import time; keep test runs off the data dir.
os.environ.setdefault("LEDGER_DATABASE_URL", "sqlite://")
os.environ.setdefault("LEDGER_TIMEZONE", "Europe/Berlin")
