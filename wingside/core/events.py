"""
Kitchen live feed
Keeps the open staff WebSocket connections and pushes order events to them
"""

import asyncio
import logging
import time
from typing import Dict, List

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class EventManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"🔌 Kitchen feed connected ({len(self.active_connections)} open)")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info(f"🔌 Kitchen feed disconnected ({len(self.active_connections)} open)")

    async def broadcast(self, message: Dict):
        dead = []
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning(f"⚠️ Dropping kitchen connection: {e}")
                dead.append(connection)
        for connection in dead:
            self.disconnect(connection)

    def publish(self, event_type: str, payload: Dict):
        """
        Fire-and-forget broadcast from synchronous service code.
        Without a running loop (scripts, cron from CLI) the event is only logged.
        """
        message = {"type": event_type, "timestamp": time.time(), "data": payload}
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, skipped broadcast of {event_type}")
            return
        if self.active_connections:
            loop.create_task(self.broadcast(message))


event_manager = EventManager()
