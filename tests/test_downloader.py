import httpx
import pytest

from mobile.parrot.services.downloader import DownloadError, ModelDownloader

FILES = ("F5TTS_v1_Base/model.safetensors", "F5TTS_v1_Base/vocab.txt")
PAYLOADS = {FILES[0]: b"w" * 3000, FILES[1]: b"a\nb\nc\n" * 100}


def make_downloader(tmp_path, handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ModelDownloader(tmp_path / "models", "SWivid/F5-TTS", FILES, endpoint="https://hub.example.com/", client=client)


def hub_handler(calls, *, sizes=True):
    def handler(request):
        calls.append((request.method, request.url.path))
        name = request.url.path.split("/resolve/main/", 1)[1]
        body = PAYLOADS[name]
        if request.method == "HEAD":
            headers = {"content-length": str(len(body))} if sizes else {}
            return httpx.Response(200, headers=headers)
        return httpx.Response(200, content=body)

    return handler


def test_ensure_downloads_missing_files_and_reports_progress(tmp_path):
    calls = []
    downloader = make_downloader(tmp_path, hub_handler(calls))
    progress = []

    paths = downloader.ensure(progress.append)

    assert set(paths) == set(FILES)
    for name, path in paths.items():
        assert path.read_bytes() == PAYLOADS[name]
        assert path.parent.parent.name == "SWivid--F5-TTS"
    assert ("GET", "/SWivid/F5-TTS/resolve/main/F5TTS_v1_Base/vocab.txt") in calls
    assert progress == sorted(progress)
    assert progress[-1] == 1.0
    assert all(0.0 <= value <= 1.0 for value in progress)
    assert downloader.is_cached()


def test_cached_files_are_not_fetched_again(tmp_path):
    calls = []
    downloader = make_downloader(tmp_path, hub_handler(calls))
    downloader.ensure()
    calls.clear()

    progress = []
    downloader.ensure(progress.append)
    assert calls == []
    assert progress == [1.0]


def test_unknown_sizes_report_per_file(tmp_path):
    downloader = make_downloader(tmp_path, hub_handler([], sizes=False))
    progress = []
    downloader.ensure(progress.append)
    assert progress == [0.5, 1.0, 1.0]


def test_http_error_removes_partial_file(tmp_path):
    def handler(request):
        if request.method == "HEAD":
            return httpx.Response(200, headers={"content-length": "10"})
        return httpx.Response(404)

    downloader = make_downloader(tmp_path, handler)
    with pytest.raises(DownloadError, match="404"):
        downloader.ensure()
    assert not downloader.is_cached()
    assert list(downloader.repo_dir.rglob("*.part")) == []


def test_unauthorized_hub_is_reported(tmp_path):
    downloader = make_downloader(tmp_path, lambda request: httpx.Response(401))
    with pytest.raises(DownloadError, match="Unauthorized"):
        downloader.ensure()
