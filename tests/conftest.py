import base64
import io
import pathlib
import sys

import numpy as np
import pytest
from PIL import Image

ROOT = pathlib.Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


def pytest_sessionstart(session):
    import unbind  # noqa: WPS433 (import inside function for guard)

    resolved = pathlib.Path(unbind.__file__).resolve()
    if ROOT not in resolved.parents:
        raise RuntimeError(
            f"Pytest is importing a stale unbind from {resolved}. "
            "Run: pip uninstall -y unbind && pip install -e ."
        )


def encode_array(array: np.ndarray, fmt: str = "PNG") -> str:
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format=fmt)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def gradient_array(width: int, height: int) -> np.ndarray:
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    red = np.tile(xs, (height, 1))
    green = np.tile(ys[:, None], (1, width))
    blue = np.full((height, width), 128, dtype=np.float32)
    return np.stack([red, green, blue], axis=-1).astype(np.uint8)


@pytest.fixture
def make_image():
    def _make(width: int = 1000, height: int = 500, fmt: str = "PNG") -> str:
        return encode_array(gradient_array(width, height), fmt=fmt)

    return _make


@pytest.fixture
def shelf_image(make_image) -> str:
    return make_image(1000, 500)


@pytest.fixture
def encode_image():
    return encode_array


@pytest.fixture
def gradient():
    return gradient_array
