"""
packaging
---------

릴리스 아카이브 생성.

gemini-extension.json 매니페스트(MCP 서버 실행 방법)를 담은 아카이브를 만든다.
win32 는 zip, 그 외 플랫폼은 tar.gz.
"""

from __future__ import annotations

import json
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .logging_utils import get_logger
from .server import SERVER_NAME


logger = get_logger(__name__)


MANIFEST_NAME = "gemini-extension.json"
DESCRIPTION = "Upload local files or directories to Google Cloud Storage and share public URLs."


def build_manifest(version: str = __version__) -> Dict[str, Any]:
    return {
        "name": SERVER_NAME,
        "version": version,
        "description": DESCRIPTION,
        "mcpServers": {
            SERVER_NAME: {
                "command": "python",
                "args": ["-m", "gcs_deployer", "serve"],
                "env": {},
            }
        },
    }


def archive_name(platform: str, arch: str) -> str:
    base = f"{platform}.{arch}.{SERVER_NAME}"
    return f"{base}.zip" if platform == "win32" else f"{base}.tar.gz"


def build_release_archive(
    platform: str,
    arch: str,
    out_dir: str = "release",
    version: Optional[str] = None,
) -> Path:
    """
    아카이브를 out_dir 에 만들고 경로를 돌려준다.
    out_dir 의 기존 파일은 건드리지 않으며, 임시 작업 디렉토리는 항상 삭제한다.
    """
    if not platform or not arch:
        raise ValueError("platform 과 arch 는 모두 필요합니다.")

    release_dir = Path(out_dir)
    release_dir.mkdir(parents=True, exist_ok=True)
    output = release_dir / archive_name(platform, arch)

    staging = Path(tempfile.mkdtemp(prefix="gcs-deployer-package-"))
    try:
        logger.info("패키징: platform=%s arch=%s", platform, arch)
        manifest_path = staging / MANIFEST_NAME
        manifest_path.write_text(json.dumps(build_manifest(version or __version__), indent=2), encoding="utf-8")

        if platform == "win32":
            with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for path in sorted(staging.rglob("*")):
                    zf.write(path, path.relative_to(staging).as_posix())
        else:
            with tarfile.open(output, "w:gz") as tf:
                for path in sorted(staging.iterdir()):
                    tf.add(path, arcname=path.name)
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    logger.info("아카이브 생성 완료: %s", output)
    return output
