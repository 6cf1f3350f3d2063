import asyncio
import logging
import signal

import uvicorn

from callscreen.core.config import Settings, settings
from callscreen.core.logging_setup import configure_logging

logger = logging.getLogger(__name__)


def build_server(config: Settings = settings) -> uvicorn.Server:
    server_config = uvicorn.Config(
        "callscreen.main:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
    return uvicorn.Server(server_config)


async def serve(config: Settings = settings) -> None:
    configure_logging(config.log_level)
    server = build_server(config)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)

    logger.info("Serving %s on %s:%s", config.app_name, config.host, config.port)
    server_task = asyncio.create_task(server.serve())
    stop_task = asyncio.create_task(stop_event.wait())
    done, _ = await asyncio.wait({server_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    if stop_task in done:
        logger.info("Shutdown signal received, draining connections")
        server.should_exit = True
    else:
        stop_task.cancel()
    await server_task


if __name__ == "__main__":
    asyncio.run(serve())
