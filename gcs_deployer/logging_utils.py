import logging
import sys


# 요청마다 INFO 로그를 남기는 라이브러리들. -vv 일 때만 그대로 둔다.
_NOISY_LOGGERS = ("urllib3", "google.auth", "mcp.server.lowlevel.server")


def setup_logging(verbosity: int = 0) -> None:
    level = logging.INFO
    if verbosity >= 1:
        level = logging.DEBUG

    # stdout 은 MCP stdio 프로토콜 채널이므로 로그는 반드시 stderr 로 보낸다.
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )

    if verbosity < 2:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
