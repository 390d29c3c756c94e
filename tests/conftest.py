import os

# Must be set before config.get_settings() is first called.
os.environ.setdefault("LEDGER_DATABASE_URL", "sqlite://")
os.environ.setdefault("LEDGER_SCHEDULER_ENABLED", "false")
os.environ.setdefault("LEDGER_TIMEZONE", "UTC")
os.environ.setdefault("LEDGER_CURRENCY_SYMBOL", "₹")
