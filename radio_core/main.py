import asyncio
import logging
import signal
import sys
import uvicorn

from .config import settings
from .state import get_store
from . import server

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
# Silence noisy libraries
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

logger = logging.getLogger("main")

class RadioService:
    def __init__(self):
        self.store = get_store()

        # Link store to server module
        server.store = self.store

    def setup(self):
        # First load runs migrations or seeds the collection
        snapshot = self.store.snapshot()
        logger.info(f"Collection ready at {settings.STATE_PATH}: {len(snapshot.items)} frequencies, schema v{snapshot.version}")

    async def start(self):
        self.setup()

        config = uvicorn.Config(server.app, host=settings.HTTP_SERVER_HOST, port=settings.HTTP_SERVER_PORT, log_level="warning")
        try:
            await uvicorn.Server(config).serve()
        except asyncio.CancelledError:
            pass

def handle_sigterm(sig, frame):
    logger.info("Received SIGTERM, shutting down...")
    sys.exit(0)

def run():
    signal.signal(signal.SIGTERM, handle_sigterm)
    service = RadioService()
    try:
        asyncio.run(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")

if __name__ == "__main__":
    run()
