import os
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

# The stores are created at import time, so point them at a scratch database
# before any test module imports the app.
os.environ["FIXLINK_DB_PATH"] = os.path.join(tempfile.mkdtemp(prefix="fixlink-tests-"), "fixlink.sqlite3")
