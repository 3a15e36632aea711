"""
gcs_deployer
------------

로컬 파일/디렉토리를 GCS 에 올리고 공개 URL 을 돌려주는 MCP 도구 서버.
AI 어시스턴트가 configure_gcs / deploy_to_gcs 도구로 호출한다.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "orchestrator",
    "server",
]
