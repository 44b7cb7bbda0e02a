"""
Per-connection duplex channel over a FastAPI WebSocket.

Frame kind is the message-kind discriminator: binary frames carry audio,
text frames carry control (language configuration). A text frame that is not
a valid control object raises TransportError and is never treated as audio.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from .errors import TransportError
from .models.schemas import ControlMessage

logger = logging.getLogger("caretalk")


@dataclass
class AudioMessage:
    data: bytes


InboundMessage = Union[ControlMessage, AudioMessage]


def parse_control(text: str) -> ControlMessage:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TransportError(f"Control frame is not JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise TransportError("Control frame must be a JSON object")
    try:
        return ControlMessage.model_validate(payload)
    except ValidationError as exc:
        raise TransportError(f"Invalid control frame: {exc.error_count()} error(s)") from exc


class SessionTransport:
    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.closed = False

    async def receive(self) -> Optional[InboundMessage]:
        """Next inbound message, or None once the peer disconnects.

        Raises TransportError for a malformed control frame; the caller drops it
        and keeps reading.
        """
        while not self.closed:
            try:
                frame = await self.websocket.receive()
            except (WebSocketDisconnect, RuntimeError, OSError):
                self.closed = True
                return None
            if frame.get("type") == "websocket.disconnect":
                self.closed = True
                return None
            if frame.get("bytes") is not None:
                return AudioMessage(frame["bytes"])
            if frame.get("text") is not None:
                return parse_control(frame["text"])
        return None

    async def send(self, message: BaseModel) -> bool:
        """Deliver a result or error frame; False if the channel is gone."""
        if self.closed:
            logger.debug("transport.send.discarded reason=closed kind=%s", type(message).__name__)
            return False
        try:
            await self.websocket.send_text(message.model_dump_json(by_alias=True))
            return True
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            self.closed = True
            logger.debug("transport.send.discarded err=%s", e)
            return False
