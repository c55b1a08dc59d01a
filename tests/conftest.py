import os
import tempfile

# Config paths are resolved at import time; keep every test run out of /app/data.
os.environ.setdefault("HARVEST_DATA_DIR", tempfile.mkdtemp(prefix="gridharvest-tests-"))
