"""
resolver
--------

배포 파라미터 결정.

우선순위: 요청 인자 > 저장된 설정 > 생성된 기본값.
bucketName / projectId 를 결정할 수 없으면 예외 대신 ConfigMissing 을 돌려준다.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .config import ConfigStore, PersistedConfig
from .logging_utils import get_logger


logger = get_logger(__name__)


SUBFOLDER_PREFIX = "site-"
_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class EffectiveParameters:
    bucket_name: str
    project_id: str
    destination_prefix: str


@dataclass(frozen=True)
class ConfigMissing:
    missing: Tuple[str, ...]

    def message(self) -> str:
        return (
            f"GCS configuration missing: {', '.join(self.missing)}. \n"
            'Please run the "configure_gcs" tool to set your Google Cloud Project ID and GCS Bucket Name.'
        )


def generate_subfolder() -> str:
    token = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{SUBFOLDER_PREFIX}{token}"


def resolve_parameters(
    store: ConfigStore,
    *,
    bucket_name: Optional[str] = None,
    destination_prefix: Optional[str] = None,
) -> Union[EffectiveParameters, ConfigMissing]:
    stored = store.load()

    bucket = bucket_name or stored.bucket_name
    project = stored.project_id

    missing: List[str] = []
    if not bucket:
        missing.append("bucketName")
    if not project:
        missing.append("projectId")
    if missing:
        logger.info("배포 설정 누락: %s", ", ".join(missing))
        return ConfigMissing(tuple(missing))

    if destination_prefix:
        prefix = destination_prefix
    elif stored.subfolder:
        prefix = stored.subfolder
    else:
        # 한 번 생성한 subfolder 는 전역 기본값으로 저장되어 이후 배포에서도 재사용된다.
        prefix = generate_subfolder()
        store.save(PersistedConfig(subfolder=prefix))
        logger.info("새 기본 subfolder 를 생성하여 저장했습니다: %s", prefix)

    return EffectiveParameters(bucket_name=bucket, project_id=project, destination_prefix=prefix)
