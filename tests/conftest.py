import io
import os
import sys
import tempfile

# config reads the environment at import time; load_dotenv never overrides these
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["VENICE_API_KEY"] = "test-key"
os.environ["GEMINI_API_KEY"] = ""
os.environ["MINIMAX_API_KEY"] = ""
os.environ["GROK_API_KEY"] = ""
os.environ["DEMO_MODE"] = "0"
os.environ["UPLOAD_FOLDER"] = tempfile.mkdtemp(prefix="uploads-")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from PIL import Image

import config


def png_bytes(size=(64, 48), color=(200, 120, 40)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def chat_response(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture(autouse=True)
def _no_demo(monkeypatch):
    monkeypatch.setattr(config, "DEMO_MODE", False)
    monkeypatch.setattr(config, "GEMINI_API_KEY", "")
    monkeypatch.setattr(config, "MINIMAX_API_KEY", "")
    monkeypatch.setattr(config, "GROK_API_KEY", "")
    monkeypatch.setattr(config, "VENICE_API_KEY", "test-key")


@pytest.fixture
def image():
    from imaging import to_small_jpeg
    return to_small_jpeg(png_bytes())
