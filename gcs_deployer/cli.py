import asyncio
import json
import sys
from typing import Optional

import click

from .config import ConfigStore, ServerSettings, load_env_files
from .logging_utils import setup_logging, get_logger
from .orchestrator import Deployer, configure as configure_defaults
from .packaging import build_release_archive
from .schemas import ConfigureRequest, DeployRequest
from .server import serve as serve_stdio


logger = get_logger(__name__)


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (.env 파일을 찾는 위치, 기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다. (-vv 는 라이브러리 로그까지 출력)",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """GCS 업로드/공개 URL 공유용 MCP 서버 및 CLI"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _load_settings_from_ctx(ctx: click.Context) -> ServerSettings:
    base_dir: str = ctx.obj["chdir"]
    load_env_files(base_dir)
    settings = ServerSettings.from_env()
    logger.debug("Settings loaded: %s", settings)
    return settings


@main.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """MCP stdio 서버 실행 (AI 어시스턴트가 띄우는 진입점)"""
    settings = _load_settings_from_ctx(ctx)
    serve_stdio(settings)


@main.command()
@click.option("--bucket", "bucket_name", required=True, help="기본으로 사용할 GCS 버킷")
@click.option("--project", "project_id", default=None, help="Google Cloud 프로젝트 ID")
@click.option("--subfolder", default=None, help="기본 업로드 하위 폴더")
@click.pass_context
def configure(ctx: click.Context, bucket_name: str, project_id: Optional[str], subfolder: Optional[str]) -> None:
    """기본 bucket/project/subfolder 를 저장 (configure_gcs 와 동일)"""
    settings = _load_settings_from_ctx(ctx)
    store = ConfigStore(settings.config_dir)
    request = ConfigureRequest(bucketName=bucket_name, projectId=project_id, subfolder=subfolder)

    try:
        text = configure_defaults(store, request)
    except OSError as e:
        click.echo(f"[ERROR] 설정 저장 실패: {e}", err=True)
        sys.exit(1)

    click.echo(text)


@main.command()
@click.argument("source", type=str)
@click.option("--bucket", "bucket_name", default=None, help="업로드할 버킷 (기본: 저장된 설정)")
@click.option("--prefix", "destination_prefix", default=None, help="버킷 내 업로드 경로 (기본: 저장된 subfolder)")
@click.pass_context
def deploy(ctx: click.Context, source: str, bucket_name: Optional[str], destination_prefix: Optional[str]) -> None:
    """파일/디렉토리를 업로드하고 공개 URL 출력 (deploy_to_gcs 와 동일)"""
    settings = _load_settings_from_ctx(ctx)
    deployer = Deployer(ConfigStore(settings.config_dir), settings=settings)
    request = DeployRequest(sourcePath=source, bucketName=bucket_name, destinationPrefix=destination_prefix)

    outcome = asyncio.run(deployer.deploy(request))

    if outcome.is_error:
        click.echo(f"[ERROR] {outcome.text}", err=True)
        sys.exit(1)
    click.echo(outcome.text)


@main.command(name="show-config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """저장된 기본 설정(config.json)을 출력"""
    settings = _load_settings_from_ctx(ctx)
    store = ConfigStore(settings.config_dir)
    click.echo(f"# {store.config_file}")
    click.echo(json.dumps(store.load().to_dict(), indent=2))


@main.command()
@click.option("--platform", "platform_name", required=True, help="대상 플랫폼 (예: darwin, linux, win32)")
@click.option("--arch", required=True, help="대상 아키텍처 (예: x64, arm64)")
@click.option(
    "--out-dir",
    type=click.Path(file_okay=False, dir_okay=True),
    default="release",
    help="아카이브를 만들 디렉토리 (기본: release)",
)
def package(platform_name: str, arch: str, out_dir: str) -> None:
    """릴리스 아카이브(gemini-extension.json 포함) 생성"""
    try:
        output = build_release_archive(platform_name, arch, out_dir=out_dir)
    except (OSError, ValueError) as e:
        logger.exception("패키징 중 오류 발생")
        click.echo(f"[ERROR] 패키징 실패: {e}", err=True)
        sys.exit(1)

    click.echo(f"Created {output}")
