"""
WebSocket feed for the donation leaderboard.
Keeps track of connected viewers and pushes each newly saved donation to them
so open leaderboards can refresh without polling.
"""

from typing import Set
from fastapi import WebSocket
import logging
from datetime import datetime

logger = logging.getLogger(__name__)


class DonationFeed:
    """Manages WebSocket connections of leaderboard viewers."""

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        self.active_connections.add(websocket)

        logger.info(f"Viewer connected. Total connections: {self.get_connection_count()}")

        await self.send_personal_message(
            {
                "type": "connection_established",
                "message": "Live donation feed connected",
                "timestamp": datetime.now().isoformat()
            },
            websocket
        )

    def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        if websocket in self.active_connections:
            self.active_connections.discard(websocket)
            logger.info(f"Viewer disconnected. Total connections: {self.get_connection_count()}")

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send a message to a specific WebSocket connection."""
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def broadcast(self, message: dict):
        """Send a message to every connected viewer, dropping dead connections."""
        disconnected = []

        for connection in self.active_connections.copy():
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.error(f"Error broadcasting to viewer: {e}")
                disconnected.append(connection)

        for connection in disconnected:
            self.disconnect(connection)

    async def broadcast_new_donation(self, donation_data: dict):
        """Broadcast a newly saved donation."""
        message = {
            "type": "new_donation",
            "data": donation_data,
            "timestamp": datetime.now().isoformat()
        }
        await self.broadcast(message)
        logger.info(f"Broadcasted new donation: {donation_data.get('id')}")

    def get_connection_count(self) -> int:
        """Get the total number of active connections."""
        return len(self.active_connections)


# Global feed instance
feed = DonationFeed()
