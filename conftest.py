"""Global pytest configuration."""

import os

# Run the app against the in-memory store unless a test wires its own
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("REDIS_URL", "")
