"""
config
------

두 종류의 설정을 다룬다.

- ServerSettings: 환경변수(.env 계열 파일 포함)에서 읽는 실행 설정
- ConfigStore: 사용자별 JSON 파일(~/.gcs-deployer/config.json)에 저장되는
  기본 배포 값(bucketName / projectId / subfolder)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

from .logging_utils import get_logger


logger = get_logger(__name__)


ENV_FILES_DEFAULT_ORDER = [".env", ".env.local"]

DEFAULT_CONFIG_DIR = Path.home() / ".gcs-deployer"
CONFIG_FILE_NAME = "config.json"

STORAGE_LOGIN_SCOPE = "https://www.googleapis.com/auth/devstorage.full_control"


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    logger.warning("%s 값을 해석할 수 없어 기본값(%s)을 사용합니다: %r", name, default, raw)
    return default


@dataclass
class ServerSettings:
    config_dir: Path = DEFAULT_CONFIG_DIR
    gcloud_command: str = "gcloud"
    login_scopes: str = STORAGE_LOGIN_SCOPE
    make_public: bool = True

    @classmethod
    def from_env(cls) -> "ServerSettings":
        config_dir = os.getenv("GCS_DEPLOYER_CONFIG_DIR")
        return cls(
            config_dir=Path(config_dir).expanduser() if config_dir else DEFAULT_CONFIG_DIR,
            gcloud_command=os.getenv("GCS_DEPLOYER_GCLOUD") or "gcloud",
            login_scopes=os.getenv("GCS_DEPLOYER_LOGIN_SCOPES") or STORAGE_LOGIN_SCOPE,
            make_public=_get_bool("GCS_DEPLOYER_MAKE_PUBLIC", True),
        )


# JSON 키(camelCase) <-> dataclass 필드
_FIELD_KEYS = {
    "project_id": "projectId",
    "bucket_name": "bucketName",
    "subfolder": "subfolder",
}


@dataclass(frozen=True)
class PersistedConfig:
    project_id: Optional[str] = None
    bucket_name: Optional[str] = None
    subfolder: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PersistedConfig":
        values: Dict[str, Optional[str]] = {}
        for attr, key in _FIELD_KEYS.items():
            raw = data.get(key)
            values[attr] = raw if isinstance(raw, str) else None
        return cls(**values)

    def to_dict(self) -> Dict[str, str]:
        # 값이 없는 필드는 기록하지 않는다 (absent == default)
        out: Dict[str, str] = {}
        for attr, key in _FIELD_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                out[key] = value
        return out

    def merged(self, partial: "PersistedConfig") -> "PersistedConfig":
        """partial 에 값이 있는 필드만 덮어쓴 새 레코드를 돌려준다."""
        return PersistedConfig(
            project_id=partial.project_id if partial.project_id is not None else self.project_id,
            bucket_name=partial.bucket_name if partial.bucket_name is not None else self.bucket_name,
            subfolder=partial.subfolder if partial.subfolder is not None else self.subfolder,
        )


@dataclass
class ConfigStore:
    """
    사용자별 기본 배포 설정 저장소.

    - load(): 파일이 없거나 깨져 있으면 빈 레코드를 돌려준다 (예외를 던지지 않음)
    - save(): 기존 레코드 위에 필드 단위로 병합 후 전체를 기록한다.
      쓰기 실패는 호출자에게 그대로 전파한다.
    """

    config_dir: Path = field(default_factory=lambda: DEFAULT_CONFIG_DIR)

    @property
    def config_file(self) -> Path:
        return Path(self.config_dir) / CONFIG_FILE_NAME

    def load(self) -> PersistedConfig:
        path = self.config_file
        try:
            if not path.exists():
                return PersistedConfig()
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"JSON 객체가 아닙니다: {type(data).__name__}")
            return PersistedConfig.from_dict(data)
        except (OSError, ValueError) as e:
            logger.warning("설정 파일을 읽지 못해 빈 설정을 사용합니다 (%s): %s", path, e)
            return PersistedConfig()

    def save(self, partial: PersistedConfig) -> PersistedConfig:
        path = self.config_file
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            merged = self.load().merged(partial)
            path.write_text(json.dumps(merged.to_dict(), indent=2), encoding="utf-8")
        except OSError:
            logger.exception("설정 파일 저장 실패: %s", path)
            raise
        logger.debug("설정 저장 완료: %s -> %s", path, merged.to_dict())
        return merged

    def get_bucket(self) -> Optional[str]:
        return self.load().bucket_name

    def get_project(self) -> Optional[str]:
        return self.load().project_id

    def get_subfolder(self) -> Optional[str]:
        return self.load().subfolder
