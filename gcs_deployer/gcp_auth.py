"""
gcp_auth
--------

gcloud/ADC 인증 상태를 다루는 모듈.

- get_current_identity: 현재 gcloud 계정을 조회 (사전 로그용, 실패해도 배포를 막지 않음)
- AuthRecoveryController: 업로드 실패가 인증 문제인지 판별하고,
  그렇다면 `gcloud auth application-default login` 을 띄운 뒤
  사용자가 다시 시도할 수 있도록 안내 메시지로 바꾼다.
"""

from __future__ import annotations

import enum
from typing import Awaitable, Callable, List, Optional, TypeVar

from google.auth.exceptions import DefaultCredentialsError, RefreshError

from .config import STORAGE_LOGIN_SCOPE
from .logging_utils import get_logger
from .subprocess_utils import ProcessSpawner, run_captured, run_interactive, spawn_process


logger = get_logger(__name__)

T = TypeVar("T")

IDENTITY_UNKNOWN = "unknown (could not determine identity)"

# 인증 누락/익명 접근 거부를 나타내는 메시지 조각
AUTH_ERROR_MARKERS = (
    "Could not load the default credentials",
    "Anonymous caller does not have storage.objects.create access",
    "default credentials were not found",
)


def identity_command(gcloud: str = "gcloud") -> List[str]:
    return [gcloud, "config", "get-value", "account"]


def login_command(gcloud: str = "gcloud", scopes: str = STORAGE_LOGIN_SCOPE) -> List[str]:
    # makePublic(ACL 변경)에 devstorage.full_control 이 필요하다. cloud-platform 은 요청하지 않는다.
    return [gcloud, "auth", "application-default", "login", f"--scopes={scopes}"]


async def get_current_identity(spawner: ProcessSpawner = spawn_process, gcloud: str = "gcloud") -> str:
    """
    현재 gcloud 에 설정된 계정을 돌려준다.
    어떤 경우에도 예외를 던지지 않고, 실패 시 IDENTITY_UNKNOWN 을 돌려준다.
    """
    try:
        result = await run_captured(identity_command(gcloud), spawner)
    except Exception as e:  # noqa: BLE001
        logger.debug("계정 조회 실패: %s", e)
        return IDENTITY_UNKNOWN

    account = result.stdout.strip()
    if result.returncode != 0 or not account:
        return IDENTITY_UNKNOWN
    return account


def is_auth_error(error: BaseException) -> bool:
    if isinstance(error, (DefaultCredentialsError, RefreshError)):
        return True
    if getattr(error, "code", None) == 401:
        return True
    message = str(error)
    return any(marker in message for marker in AUTH_ERROR_MARKERS)


class AuthRecoveryState(str, enum.Enum):
    ATTEMPTING = "attempting"
    RECOVERING = "recovering"
    FAILED = "failed"


class AuthRecoveryError(RuntimeError):
    """인증 복구 흐름을 거친 뒤 사용자에게 그대로 보여줄 메시지를 담는다."""

    def __init__(self, message: str, original: BaseException, login_launched: bool) -> None:
        super().__init__(message)
        self.original = original
        self.login_launched = login_launched


class AuthRecoveryController:
    """
    ATTEMPTING -> (인증 오류) -> RECOVERING -> FAILED

    인증 오류가 아니면 원래 예외를 그대로 다시 던진다.
    같은 호출 안에서 업로드를 재시도하지 않는다. 로그인은 다음 호출을 위한 것이다.
    """

    def __init__(
        self,
        spawner: ProcessSpawner = spawn_process,
        *,
        gcloud: str = "gcloud",
        scopes: str = STORAGE_LOGIN_SCOPE,
    ) -> None:
        self._spawner = spawner
        self._gcloud = gcloud
        self._scopes = scopes
        self.state = AuthRecoveryState.ATTEMPTING
        self.last_error: Optional[BaseException] = None

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        self.state = AuthRecoveryState.ATTEMPTING
        try:
            return await operation()
        except Exception as e:
            self.last_error = e
            if not is_auth_error(e):
                self.state = AuthRecoveryState.FAILED
                raise
            recovery_error = await self._recover(e)
            raise recovery_error from e

    async def _recover(self, error: Exception) -> AuthRecoveryError:
        self.state = AuthRecoveryState.RECOVERING
        logger.warning("인증 오류를 감지했습니다. gcloud 로그인을 시도합니다: %s", error)

        cmd = login_command(self._gcloud, self._scopes)
        try:
            returncode = await run_interactive(cmd, self._spawner)
            if returncode != 0:
                raise RuntimeError(f"gcloud exited with code {returncode}")
        except Exception as launch_error:  # noqa: BLE001
            self.state = AuthRecoveryState.FAILED
            logger.error("gcloud 로그인 실행 실패: %s", launch_error)
            return AuthRecoveryError(
                f"Authentication failed and could not launch gcloud: {launch_error}. "
                f"Original error: {error}",
                original=error,
                login_launched=False,
            )

        self.state = AuthRecoveryState.FAILED
        logger.info("gcloud 로그인이 완료되었습니다. 요청을 다시 시도해야 합니다.")
        return AuthRecoveryError(
            'Authentication was missing. I have launched the "gcloud auth application-default login" '
            "command. Please complete the login process there and then try this request again.",
            original=error,
            login_launched=True,
        )
