import sys
from pathlib import Path

import pytest


# Ensure `backend/` is on sys.path so tests can import local modules
# like `clustering.*`, `geo.*`, and `main`; `tests/` for the shared factories.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))
sys.path.insert(0, str(Path(__file__).resolve().parent))


@pytest.fixture(autouse=True)
def _fresh_vocabulary():
    from zoning.labels import clear_vocabulary_cache

    clear_vocabulary_cache()
    yield
    clear_vocabulary_cache()
