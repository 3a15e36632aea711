"""
subprocess_utils
----------------

gcloud 같은 외부 명령 실행 공통 유틸.

프로세스 생성은 ProcessSpawner 로 주입받는다. 기본 구현은
asyncio.create_subprocess_exec 이고, 테스트에서는 가짜 spawner 를 넘긴다.
"""

from __future__ import annotations

import asyncio
import io
import sys
from dataclasses import dataclass
from textwrap import shorten
from typing import Awaitable, Optional, Protocol, Sequence, Tuple

from .logging_utils import get_logger


logger = get_logger(__name__)


class ProcessHandle(Protocol):
    """asyncio.subprocess.Process 중 여기서 사용하는 부분만."""

    returncode: Optional[int]

    async def wait(self) -> int: ...

    async def communicate(self, input: Optional[bytes] = None) -> Tuple[bytes, bytes]: ...


class ProcessSpawner(Protocol):
    def __call__(self, cmd: Sequence[str], *, interactive: bool = False) -> Awaitable[ProcessHandle]: ...


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


def _stderr_fileno() -> Optional[int]:
    try:
        return sys.stderr.fileno()
    except (AttributeError, ValueError, io.UnsupportedOperation):
        return None


async def spawn_process(cmd: Sequence[str], *, interactive: bool = False) -> asyncio.subprocess.Process:
    """
    기본 spawner.

    - interactive=False: stdout/stderr 캡처
    - interactive=True : stdin 은 터미널을 그대로 물려받고, 출력은 stderr 로 보낸다.
      (stdout 은 MCP 프로토콜 스트림이므로 자식 프로세스가 쓰면 안 된다)
    """
    logger.info("명령 실행: %s", " ".join(cmd))
    if interactive:
        return await asyncio.create_subprocess_exec(
            *cmd,
            stdin=None,
            stdout=_stderr_fileno(),
            stderr=None,
        )
    return await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


def _command_not_found(cmd: Sequence[str]) -> RuntimeError:
    return RuntimeError(
        f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (gcloud CLI 가 설치되어 있는지 확인하세요)"
    )


async def run_captured(cmd: Sequence[str], spawner: ProcessSpawner = spawn_process) -> RunResult:
    """
    명령을 실행하고 stdout/stderr 를 모아 돌려준다.
    종료 코드는 검사하지 않는다 (호출자가 판단).
    """
    try:
        proc = await spawner(list(cmd))
    except FileNotFoundError as e:
        raise _command_not_found(cmd) from e

    out, err = await proc.communicate()
    stdout = (out or b"").decode("utf-8", errors="replace")
    stderr = (err or b"").decode("utf-8", errors="replace")
    if stdout.strip():
        logger.debug("명령 stdout: %s", shorten(stdout.strip(), width=2000))
    if stderr.strip():
        logger.debug("명령 stderr: %s", shorten(stderr.strip(), width=2000))
    returncode = proc.returncode if proc.returncode is not None else -1
    return RunResult(returncode=returncode, stdout=stdout, stderr=stderr)


async def run_interactive(cmd: Sequence[str], spawner: ProcessSpawner = spawn_process) -> int:
    """
    사용자 입력이 필요한 명령(브라우저 로그인 등)을 실행하고 종료를 기다린다.
    사람이 개입하는 흐름이므로 타임아웃은 두지 않는다.
    """
    try:
        proc = await spawner(list(cmd), interactive=True)
    except FileNotFoundError as e:
        raise _command_not_found(cmd) from e
    return await proc.wait()
