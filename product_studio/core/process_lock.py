# product_studio/core/process_lock.py
import tempfile
from pathlib import Path

from filelock import FileLock

# Create a directory for lock files to keep things clean.
lock_dir = Path(tempfile.gettempdir()) / "product_studio_locks"
lock_dir.mkdir(exist_ok=True)

# Weight downloads share one cache directory across worker processes.
# Only one process may fetch a given checkpoint at a time.
weights_lock = FileLock(lock_dir / "model_weights.lock", timeout=600)  # 10 minute timeout
