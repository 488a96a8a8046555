import sys
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Sequence

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sitepub.engine.process import ProcessResult  # noqa: E402
from sitepub.models import PublishCredentials, SiteRegistration  # noqa: E402


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeRunner:
    """Records commands instead of running them."""

    def __init__(self, failures: Optional[set[str]] = None) -> None:
        self.calls: list[tuple[str, tuple[str, ...], Optional[Path]]] = []
        self.failures = failures or set()
        self._lock = threading.Lock()

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        timeout: Optional[float] = None,
        cwd: Optional[Path] = None,
    ) -> ProcessResult:
        argv = (command, *[str(arg) for arg in args])
        with self._lock:
            self.calls.append((command, tuple(argv[1:]), cwd))
        returncode = 1 if command in self.failures else 0
        return ProcessResult(command=argv, returncode=returncode)

    def commands(self) -> list[str]:
        with self._lock:
            return [command for command, _, _ in self.calls]


class RecordingStorage:
    def __init__(self, credentials: PublishCredentials, failures: int = 0) -> None:
        self.credentials = credentials
        self.failures = failures
        self.puts: list[tuple[str, bytes, str]] = []

    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        from sitepub.errors import PublishError

        if self.failures > 0:
            self.failures -= 1
            raise PublishError(f"simulated failure for {key}")
        self.puts.append((key, body, content_type))


class RecordingStorageFactory:
    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.created: list[RecordingStorage] = []

    def __call__(self, credentials: PublishCredentials) -> RecordingStorage:
        storage = RecordingStorage(credentials, failures=self.failures)
        self.created.append(storage)
        return storage

    def keys(self) -> list[str]:
        return [key for storage in self.created for key, _, _ in storage.puts]


@pytest.fixture
def credentials() -> PublishCredentials:
    return PublishCredentials(key="AKIA", secret="shh", bucket="example.org")


@pytest.fixture
def registration() -> SiteRegistration:
    return SiteRegistration(
        name="Example",
        email="owner@example.org",
        base_url="/blog",
        host_name="example.org",
        clone_url_type="git",
        clone_url="https://git.example.org/site.git",
        api_secret="secret",
        needs_deployment=False,
    )
