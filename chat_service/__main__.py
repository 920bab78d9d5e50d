"""启动聊天服务：python -m chat_service"""
import argparse
import logging

import uvicorn

from chat_service import config
from chat_service.logging_config import setup_logging
from chat_service.main import create_app

logger = logging.getLogger("chat_service")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the chat service.")
    parser.add_argument("--host", default=config.HOST, help=f"监听地址 (默认: {config.HOST})")
    parser.add_argument("--port", type=int, default=config.PORT, help=f"监听端口 (默认: {config.PORT})")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="日志级别")
    args = parser.parse_args()

    setup_logging(args.log_level)
    logger.info("Chat server starting on %s:%d", args.host, args.port)

    # uvicorn 收到 SIGINT/SIGTERM 后停止接收新请求，在宽限期内处理完进行中的请求
    uvicorn.run(
        create_app(),
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        timeout_graceful_shutdown=config.SHUTDOWN_GRACE_PERIOD,
    )
    logger.info("Server exiting")


if __name__ == "__main__":
    main()
