import os
import tempfile

import pytest

# Point config at throwaway paths and disable real API clients before any
# farmguide module is imported.
_TMP = tempfile.mkdtemp(prefix="farmguide-tests-")
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["INVENTORY_PATH"] = os.path.join(_TMP, "inventory.json")
os.environ["GROQ_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["DEFAULT_LANGUAGE"] = "hi"

from farmguide.store import AppStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    return AppStore(persist_path=str(tmp_path / "inventory.json"))
