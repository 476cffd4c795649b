"""Model weight downloads from a Hugging Face style hub."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

import httpx

from ..errors import ParrotError

ProgressCallback = Callable[[float], None]


class DownloadError(ParrotError):
    """A model file could not be fetched; partial downloads are removed."""


class ModelDownloader:
    def __init__(
        self,
        cache_dir: Path,
        repo_id: str,
        files: Iterable[str],
        *,
        endpoint: str = "https://huggingface.co",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.repo_id = repo_id
        self.files = tuple(files)
        self.endpoint = endpoint.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    @property
    def repo_dir(self) -> Path:
        return self.cache_dir / self.repo_id.replace("/", "--")

    def local_path(self, filename: str) -> Path:
        return self.repo_dir / filename

    def is_cached(self) -> bool:
        return all(self.local_path(name).is_file() for name in self.files)

    def ensure(self, progress: ProgressCallback | None = None) -> Dict[str, Path]:
        """Download every missing file; ``progress`` receives the overall fraction."""
        missing = [name for name in self.files if not self.local_path(name).is_file()]
        if missing:
            sizes = {name: self._remote_size(name) for name in missing}
            total = sum(size for size in sizes.values() if size)
            done = 0
            for index, name in enumerate(missing):

                def _report(received: int, _offset=done) -> None:
                    if progress and total:
                        progress(min(1.0, (_offset + received) / total))

                received = self._fetch(name, _report)
                done += sizes[name] or received
                if progress and not total:
                    progress((index + 1) / len(missing))
        if progress:
            progress(1.0)
        return {name: self.local_path(name) for name in self.files}

    def close(self) -> None:
        self._client.close()

    def _url(self, filename: str) -> str:
        return f"{self.endpoint}/{self.repo_id}/resolve/main/{filename}"

    def _remote_size(self, filename: str) -> int:
        try:
            resp = self._client.head(self._url(filename))
            resp.raise_for_status()
        except httpx.HTTPError:
            return 0
        try:
            return int(resp.headers.get("content-length", "0"))
        except ValueError:
            return 0

    def _fetch(self, filename: str, report: Callable[[int], None]) -> int:
        target = self.local_path(filename)
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        received = 0
        try:
            with self._client.stream("GET", self._url(filename)) as resp:
                if resp.status_code == 401:
                    raise DownloadError(f"Unauthorized: {self.repo_id} requires a token")
                resp.raise_for_status()
                with partial.open("wb") as fh:
                    for chunk in resp.iter_bytes():
                        fh.write(chunk)
                        received += len(chunk)
                        report(received)
            partial.replace(target)
        except httpx.HTTPStatusError as exc:
            partial.unlink(missing_ok=True)
            raise DownloadError(f"Download failed for {filename}: {exc.response.status_code}") from exc
        except (httpx.HTTPError, OSError) as exc:
            partial.unlink(missing_ok=True)
            raise DownloadError(f"Download failed for {filename}: {exc}") from exc
        except DownloadError:
            partial.unlink(missing_ok=True)
            raise
        return received


__all__ = ["DownloadError", "ModelDownloader"]
