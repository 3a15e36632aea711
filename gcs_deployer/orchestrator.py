"""
orchestrator
------------

configure_gcs / deploy_to_gcs 두 동작의 흐름을 조립한다.

deploy 흐름:
  파라미터 결정 -> 소스 검증 -> 계정 조회(로그용) -> 업로드(인증 복구 감시) -> 결과 텍스트
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from google.cloud import storage

from .config import ConfigStore, PersistedConfig, ServerSettings
from .gcp_auth import AuthRecoveryController, AuthRecoveryError, get_current_identity
from .gcp_gcs import InvalidSourceError, deploy_path, validate_source
from .logging_utils import get_logger
from .resolver import ConfigMissing, EffectiveParameters, resolve_parameters
from .schemas import ConfigureRequest, DeployRequest
from .subprocess_utils import ProcessSpawner, spawn_process


logger = get_logger(__name__)


StorageFactory = Callable[[str], storage.Client]


def default_storage_factory(project_id: str) -> storage.Client:
    # ADC 가 없으면 여기서 DefaultCredentialsError 가 난다.
    return storage.Client(project=project_id)


@dataclass(frozen=True)
class ToolOutcome:
    text: str
    is_error: bool = False


def configure(store: ConfigStore, request: ConfigureRequest) -> str:
    """
    기본 bucket / project / subfolder 를 저장하고 확인 메시지를 돌려준다.
    저장 실패(OSError)는 그대로 전파한다.
    """
    store.save(
        PersistedConfig(
            bucket_name=request.bucket_name,
            project_id=request.project_id or None,
            subfolder=request.subfolder or None,
        )
    )
    logger.info(
        "기본 설정 저장: bucket=%s project=%s subfolder=%s",
        request.bucket_name,
        request.project_id,
        request.subfolder,
    )

    text = f"Configuration saved for bucket '{request.bucket_name}'"
    if request.project_id:
        text += f" in project '{request.project_id}'"
    if request.subfolder:
        text += f" with subfolder '{request.subfolder}'"
    return text + "."


def format_preflight(source_path: str, params: EffectiveParameters, identity: str) -> str:
    return (
        f"Deploying '{source_path}' to bucket '{params.bucket_name}' in project '{params.project_id}' "
        f"using identity '{identity}' (subfolder: '{params.destination_prefix}')..."
    )


def format_success(preflight: str, urls: List[str]) -> str:
    lines: List[str] = [preflight, "", "Successfully deployed to GCS. Public URLs:"]
    lines.extend(urls)
    return "\n".join(lines)


class Deployer:
    """
    deploy_to_gcs 한 번의 호출을 처음부터 끝까지 수행한다.

    외부 의존성(설정 저장소, 프로세스 실행, Storage 클라이언트 생성)은 모두
    생성자로 주입받는다.
    """

    def __init__(
        self,
        store: ConfigStore,
        *,
        settings: Optional[ServerSettings] = None,
        spawner: ProcessSpawner = spawn_process,
        storage_factory: StorageFactory = default_storage_factory,
    ) -> None:
        self.store = store
        self.settings = settings or ServerSettings(config_dir=store.config_dir)
        self.spawner = spawner
        self.storage_factory = storage_factory

    async def deploy(self, request: DeployRequest) -> ToolOutcome:
        # 두 검사 모두 서브폴더 생성/저장보다 먼저 끝나야 한다.
        try:
            source = validate_source(request.source_path)
        except InvalidSourceError as e:
            logger.error("잘못된 업로드 대상: %s", e)
            return ToolOutcome(f"Error deploying to GCS: {e}", is_error=True)

        resolved = resolve_parameters(
            self.store,
            bucket_name=request.bucket_name,
            destination_prefix=request.destination_prefix,
        )
        if isinstance(resolved, ConfigMissing):
            return ToolOutcome(resolved.message(), is_error=True)

        identity = await get_current_identity(self.spawner, self.settings.gcloud_command)
        preflight = format_preflight(request.source_path, resolved, identity)
        logger.info(preflight)

        controller = AuthRecoveryController(
            self.spawner,
            gcloud=self.settings.gcloud_command,
            scopes=self.settings.login_scopes,
        )
        try:
            urls = await controller.run(lambda: self._upload(source, resolved))
        except AuthRecoveryError as e:
            logger.error("인증 문제로 배포하지 못했습니다: %s", e)
            return ToolOutcome(f"Error deploying to GCS: {e}", is_error=True)
        except Exception as e:  # noqa: BLE001
            logger.exception("배포 중 오류 발생")
            return ToolOutcome(f"Error deploying to GCS: {e}", is_error=True)

        return ToolOutcome(format_success(preflight, urls))

    async def _upload(self, source: Path, params: EffectiveParameters) -> List[str]:
        client = await asyncio.to_thread(self.storage_factory, params.project_id)
        return await deploy_path(
            client,
            source,
            params.bucket_name,
            params.destination_prefix,
            make_public=self.settings.make_public,
        )
