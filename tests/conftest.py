"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 gcs_deployer 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.

테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, repo root 를 sys.path 최상단에 고정한다.

GCS 클라이언트와 gcloud 프로세스는 모두 가짜 구현으로 대체한다.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


# -----------------------------
# 가짜 프로세스 / spawner
# -----------------------------
class FakeProcess:
    def __init__(self, returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"") -> None:
        self.returncode: Optional[int] = returncode
        self._stdout = stdout
        self._stderr = stderr

    async def wait(self) -> int:
        return self.returncode  # type: ignore[return-value]

    async def communicate(self, input: Optional[bytes] = None) -> Tuple[bytes, bytes]:  # noqa: A002
        return self._stdout, self._stderr


class FakeSpawner:
    """
    gcloud 하위 명령(cmd[1]: "config" / "auth") 별로 응답을 지정한다.
    error 가 지정되면 프로세스 생성 자체가 실패한다.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[List[str], bool]] = []
        self._responses: Dict[str, Tuple[int, bytes, Optional[BaseException]]] = {
            "config": (0, b"dev@example.com\n", None),
            "auth": (0, b"", None),
        }

    def respond(
        self,
        subcommand: str,
        *,
        returncode: int = 0,
        stdout: bytes = b"",
        error: Optional[BaseException] = None,
    ) -> None:
        self._responses[subcommand] = (returncode, stdout, error)

    async def __call__(self, cmd: Sequence[str], *, interactive: bool = False) -> FakeProcess:
        self.calls.append((list(cmd), interactive))
        returncode, stdout, error = self._responses.get(cmd[1], (0, b"", None))
        if error is not None:
            raise error
        return FakeProcess(returncode=returncode, stdout=stdout)

    def calls_for(self, subcommand: str) -> List[List[str]]:
        return [cmd for cmd, _ in self.calls if cmd[1] == subcommand]


# -----------------------------
# 가짜 GCS 클라이언트
# -----------------------------
class FakeBlob:
    def __init__(self, bucket: "FakeBucket", name: str) -> None:
        self.bucket = bucket
        self.name = name
        self.cache_control: Optional[str] = None
        self.content_type: Optional[str] = None
        self.source: Optional[str] = None
        self.public = False

    def upload_from_filename(self, filename: str, content_type: Optional[str] = None) -> None:
        client = self.bucket.client
        if client.upload_error_for is not None:
            error = client.upload_error_for(self.name)
            if error is not None:
                raise error
        self.source = filename
        self.content_type = content_type
        client.uploads.append(self)

    def make_public(self) -> None:
        if self.bucket.client.make_public_error is not None:
            raise self.bucket.client.make_public_error
        self.public = True


class FakeBucket:
    def __init__(self, client: "FakeClient", name: str) -> None:
        self.client = client
        self.name = name

    def blob(self, name: str) -> FakeBlob:
        return FakeBlob(self, name)


class FakeClient:
    def __init__(self) -> None:
        self.uploads: List[FakeBlob] = []
        self.projects: List[str] = []
        self.upload_error_for: Optional[Callable[[str], Optional[BaseException]]] = None
        self.make_public_error: Optional[BaseException] = None
        self.construct_error: Optional[BaseException] = None

    def bucket(self, name: str) -> FakeBucket:
        return FakeBucket(self, name)

    def factory(self, project_id: str) -> "FakeClient":
        self.projects.append(project_id)
        if self.construct_error is not None:
            raise self.construct_error
        return self

    @property
    def keys(self) -> List[str]:
        return [blob.name for blob in self.uploads]


@pytest.fixture
def fake_spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    return tmp_path / "gcs-deployer-config"


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """a.txt, sub/b.txt 두 파일을 가진 디렉토리."""
    root = tmp_path / "site"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("a", encoding="utf-8")
    (root / "sub" / "b.txt").write_text("b", encoding="utf-8")
    return root
