"""
server
------

MCP stdio 서버.

도구 두 개(configure_gcs, deploy_to_gcs)를 노출한다.
도구 수준의 실패는 isError=True 응답으로 돌려주고,
알 수 없는 도구 / 필수 인자 누락만 프로토콜 수준 오류(McpError)로 던진다.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

import anyio
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError

from . import __version__
from .config import ConfigStore, ServerSettings
from .logging_utils import get_logger
from .orchestrator import Deployer, StorageFactory, ToolOutcome, configure, default_storage_factory
from .schemas import ConfigureRequest, DeployRequest, InvalidArguments, parse_arguments
from .subprocess_utils import ProcessSpawner, spawn_process


logger = get_logger(__name__)


SERVER_NAME = "gcs-deployer"

DEPLOY_TOOL = types.Tool(
    name="deploy_to_gcs",
    description=(
        "Uploads a file or directory to Google Cloud Storage and makes it public. "
        'Use this when the user asks to "share this file with public", '
        '"share this file with everyone", or similar requests to publish content.'
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "sourcePath": {
                "type": "string",
                "description": "Local path to the file or directory to deploy",
            },
            "bucketName": {
                "type": "string",
                "description": "The GCS bucket to deploy to. Optional if configured via configure_gcs.",
            },
            "destinationPrefix": {
                "type": "string",
                "description": "Optional folder path in the bucket",
            },
        },
        "required": ["sourcePath"],
    },
)

CONFIGURE_TOOL = types.Tool(
    name="configure_gcs",
    description=(
        "Sets the default Google Cloud Project and GCS Bucket for deployment. "
        "Use this if deploy_to_gcs fails due to missing configuration."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "bucketName": {
                "type": "string",
                "description": "The GCS bucket to use by default",
            },
            "projectId": {
                "type": "string",
                "description": "The Google Cloud Project ID",
            },
            "subfolder": {
                "type": "string",
                "description": "Default subfolder to deploy to (optional)",
            },
        },
        "required": ["bucketName"],
    },
)

TOOLS: List[types.Tool] = [DEPLOY_TOOL, CONFIGURE_TOOL]


def _text_result(outcome: ToolOutcome) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=outcome.text)],
        isError=outcome.is_error,
    )


def _invalid_params(invalid: InvalidArguments) -> McpError:
    logger.debug("도구 인자 검증 실패: %s", invalid.detail)
    return McpError(types.ErrorData(code=types.INVALID_PARAMS, message=invalid.message()))


class GcsDeployServer:
    def __init__(
        self,
        settings: Optional[ServerSettings] = None,
        *,
        store: Optional[ConfigStore] = None,
        spawner: ProcessSpawner = spawn_process,
        storage_factory: StorageFactory = default_storage_factory,
    ) -> None:
        self.settings = settings or ServerSettings.from_env()
        self.store = store or ConfigStore(self.settings.config_dir)
        self.deployer = Deployer(
            self.store,
            settings=self.settings,
            spawner=spawner,
            storage_factory=storage_factory,
        )

        self.server: Server = Server(SERVER_NAME, version=__version__)
        self._register_handlers()

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def _list_tools() -> List[types.Tool]:
            return TOOLS

        async def _call_tool(req: types.CallToolRequest) -> types.ServerResult:
            result = await self.handle_call_tool(req.params.name, req.params.arguments)
            return types.ServerResult(result)

        # call_tool 데코레이터는 모든 예외를 isError 결과로 바꾸므로,
        # McpError 가 프로토콜 오류로 전달되도록 핸들러를 직접 등록한다.
        self.server.request_handlers[types.CallToolRequest] = _call_tool

    async def handle_call_tool(
        self, name: str, arguments: Optional[Mapping[str, Any]]
    ) -> types.CallToolResult:
        if name == CONFIGURE_TOOL.name:
            parsed = parse_arguments(ConfigureRequest, arguments)
            if isinstance(parsed, InvalidArguments):
                raise _invalid_params(parsed)
            try:
                text = configure(self.store, parsed.request)
            except OSError as e:
                return _text_result(ToolOutcome(f"Error saving configuration: {e}", is_error=True))
            return _text_result(ToolOutcome(text))

        if name == DEPLOY_TOOL.name:
            parsed = parse_arguments(DeployRequest, arguments)
            if isinstance(parsed, InvalidArguments):
                raise _invalid_params(parsed)
            outcome = await self.deployer.deploy(parsed.request)
            return _text_result(outcome)

        raise McpError(types.ErrorData(code=types.METHOD_NOT_FOUND, message=f"Unknown tool: {name}"))

    async def run(self) -> None:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("GCS Deploy MCP server running on stdio")
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )


def serve(settings: Optional[ServerSettings] = None) -> None:
    """stdio 서버를 실행한다. Ctrl+C(SIGINT) 는 정상 종료로 처리한다."""
    app = GcsDeployServer(settings)
    try:
        anyio.run(app.run)
    except KeyboardInterrupt:
        logger.info("인터럽트를 받아 서버를 종료합니다.")
