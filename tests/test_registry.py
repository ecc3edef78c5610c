"""
Tests for resource loading and the download cache.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from onnx_paddle_ocr.errors import ResourceLoadError
from onnx_paddle_ocr.models import DETECTION_MODEL, ResourceLoader
from onnx_paddle_ocr.models.config import CACHE_DIR_ENV, default_cache_dir


def fake_response(chunks, status_error=None):
    response = MagicMock()
    response.headers = {"content-length": str(sum(len(c) for c in chunks))}
    response.iter_content.side_effect = lambda chunk_size: iter(chunks)
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


class TestResourceLoader:
    """Tests for ResourceLoader."""

    @pytest.fixture
    def loader(self, tmp_path):
        return ResourceLoader(cache_dir=tmp_path / "cache")

    def test_bytes_pass_through(self, loader):
        assert loader.load(b"model") == b"model"
        assert loader.load(memoryview(b"xxmodel")[2:]) == b"model"

    def test_reads_local_path(self, loader, tmp_path):
        path = tmp_path / "det.onnx"
        path.write_bytes(b"weights")

        assert loader.load(str(path)) == b"weights"
        assert loader.load(path) == b"weights"

    def test_missing_path_raises(self, loader, tmp_path):
        with pytest.raises(ResourceLoadError):
            loader.load(str(tmp_path / "missing.onnx"))

    def test_url_is_downloaded_once(self, loader):
        url = "https://example.com/models/rec.onnx"
        with patch("onnx_paddle_ocr.models.registry.requests.get") as mock_get:
            mock_get.return_value = fake_response([b"we", b"ights"])

            first = loader.load(url)
            second = loader.load(url)

        assert first == second == b"weights"
        assert mock_get.call_count == 1
        assert (loader.cache_dir / "rec.onnx").read_bytes() == b"weights"

    def test_none_uses_default_model(self, loader):
        with patch("onnx_paddle_ocr.models.registry.requests.get") as mock_get:
            mock_get.return_value = fake_response([b"det"])

            data = loader.load(None, DETECTION_MODEL)

        assert data == b"det"
        assert mock_get.call_args[0][0] == DETECTION_MODEL.url
        assert (loader.cache_dir / DETECTION_MODEL.filename).exists()

    def test_none_without_default_raises(self, loader):
        with pytest.raises(ResourceLoadError):
            loader.load(None)

    def test_http_error_raises_and_caches_nothing(self, loader):
        url = "https://example.com/models/missing.onnx"
        with patch("onnx_paddle_ocr.models.registry.requests.get") as mock_get:
            mock_get.return_value = fake_response([], status_error=requests.HTTPError("404"))

            with pytest.raises(ResourceLoadError):
                loader.load(url)

        assert not (loader.cache_dir / "missing.onnx").exists()

    def test_connection_error_raises(self, loader):
        with patch("onnx_paddle_ocr.models.registry.requests.get", side_effect=requests.ConnectionError("down")):
            with pytest.raises(ResourceLoadError):
                loader.load("https://example.com/x.onnx")

    def test_unsupported_source_raises(self, loader):
        with pytest.raises(ResourceLoadError):
            loader.load(42)

    def test_clear_cache(self, loader):
        loader.cache_dir.mkdir(parents=True)
        (loader.cache_dir / "a.onnx").write_bytes(b"a")
        (loader.cache_dir / "b.txt").write_bytes(b"b")

        removed = loader.clear_cache()

        assert sorted(p.name for p in removed) == ["a.onnx", "b.txt"]
        assert list(loader.cache_dir.iterdir()) == []

    def test_clear_missing_cache_is_noop(self, loader):
        assert loader.clear_cache() == []


class TestCacheDir:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv(CACHE_DIR_ENV, str(tmp_path / "custom"))

        assert default_cache_dir() == tmp_path / "custom"
        assert ResourceLoader().cache_dir == tmp_path / "custom"

    def test_default_location(self, monkeypatch):
        monkeypatch.delenv(CACHE_DIR_ENV, raising=False)

        assert default_cache_dir().parts[-2:] == (".cache", "onnx-paddle-ocr")
