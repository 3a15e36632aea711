"""
gcp_gcs
-------

로컬 파일/디렉토리를 GCS 버킷에 업로드하고 공개 URL 을 돌려주는 모듈.
"""

from __future__ import annotations

import asyncio
import mimetypes
import os
from pathlib import Path
from typing import Iterator, List, Tuple

from google.cloud import storage

from .logging_utils import get_logger


logger = get_logger(__name__)


CACHE_CONTROL = "public, max-age=31536000"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
PUBLIC_URL_BASE = "https://storage.googleapis.com"


class InvalidSourceError(ValueError):
    pass


def validate_source(source_path: str) -> Path:
    """
    업로드 대상이 존재하는 일반 파일 또는 디렉토리인지 확인한다.
    네트워크 호출 전에 실패해야 하므로 배포 흐름의 가장 앞에서 부른다.
    """
    path = Path(source_path).expanduser()
    if not path.exists():
        raise InvalidSourceError(f"sourcePath does not exist: {source_path}")
    if not (path.is_file() or path.is_dir()):
        raise InvalidSourceError(f"sourcePath must be a file or directory: {source_path}")
    return path


def _walk(directory: Path, root: Path) -> Iterator[Tuple[Path, str]]:
    for name in os.listdir(directory):
        entry = directory / name
        # is_dir/is_file 은 심볼릭 링크를 따라간다.
        if entry.is_dir():
            yield from _walk(entry, root)
        elif entry.is_file():
            yield entry, entry.relative_to(root).as_posix()
        else:
            logger.debug("일반 파일이 아니어서 건너뜀: %s", entry)


def iter_source_files(source: Path) -> Iterator[Tuple[Path, str]]:
    """
    (로컬 경로, 목적지 상대 경로) 를 순회 순서대로 낸다.

    파일이면 basename 하나, 디렉토리면 하위의 모든 파일(숨김 파일 포함)을
    깊이 우선으로, 디렉토리 내에서는 os.listdir 순서로 돌려준다.
    """
    if source.is_file():
        yield source, source.name
        return
    if source.is_dir():
        yield from _walk(source, source)
        return
    raise InvalidSourceError(f"sourcePath must be a file or directory: {source}")


def destination_key(prefix: str, relative_path: str) -> str:
    prefix = (prefix or "").rstrip("/")
    if not prefix:
        return relative_path
    return f"{prefix}/{relative_path}"


def guess_content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or DEFAULT_CONTENT_TYPE


def public_url(bucket_name: str, key: str) -> str:
    return f"{PUBLIC_URL_BASE}/{bucket_name}/{key}"


def upload_file(bucket: storage.Bucket, local_path: Path, destination: str, *, make_public: bool = True) -> str:
    """
    파일 하나를 업로드하고 공개 URL 을 돌려준다.

    make_public 실패는 경고만 남긴다. 버킷에 Uniform Bucket Level Access 가
    켜져 있으면 객체 단위 ACL 을 바꿀 수 없고, 이 경우 버킷 정책이 공개 읽기를
    허용하고 있어야 한다.
    """
    content_type = guess_content_type(local_path)
    blob = bucket.blob(destination)
    blob.cache_control = CACHE_CONTROL
    blob.upload_from_filename(str(local_path), content_type=content_type)
    logger.info("업로드 완료: %s -> gs://%s/%s (%s)", local_path, bucket.name, destination, content_type)

    if make_public:
        try:
            blob.make_public()
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "객체를 공개로 설정하지 못했습니다 (uniform bucket access 일 수 있음): %s: %s",
                destination,
                e,
            )

    return public_url(bucket.name, destination)


async def deploy_path(
    client: storage.Client,
    source: Path,
    bucket_name: str,
    destination_prefix: str,
    *,
    make_public: bool = True,
) -> List[str]:
    """
    source 를 순서대로 하나씩 업로드하고 공개 URL 목록을 돌려준다.

    첫 실패에서 중단하며, 이미 올라간 객체는 되돌리지 않는다.
    클라이언트 호출은 blocking 이므로 worker thread 에서 실행한다.
    """
    bucket = client.bucket(bucket_name)
    urls: List[str] = []
    for local_path, relative in iter_source_files(source):
        destination = destination_key(destination_prefix, relative)
        url = await asyncio.to_thread(upload_file, bucket, local_path, destination, make_public=make_public)
        urls.append(url)
    logger.info("총 %d개 파일 업로드 완료 (bucket=%s)", len(urls), bucket_name)
    return urls
