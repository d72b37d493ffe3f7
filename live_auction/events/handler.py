"""Viewer action ingress: envelope validation and dispatch to the engine."""

from __future__ import annotations

import logging
from typing import Any

from jsonschema import ValidationError

from ..broadcast.fanout import ACTION_REJECTED, Viewer
from ..rooms.engine import AuctionEngine
from ..rooms.models import ActionResult
from ..transport.codec import decode_message
from ..validation.validator import SchemaRegistry

logger = logging.getLogger(__name__)


class ActionService:
    def __init__(
        self,
        engine: AuctionEngine,
        schemas: SchemaRegistry,
        *,
        acknowledge_rejections: bool = False,
    ) -> None:
        self._engine = engine
        self._schemas = schemas
        self._acknowledge_rejections = acknowledge_rejections

    async def handle_raw(self, viewer: Viewer, raw: str | bytes) -> ActionResult:
        try:
            message = decode_message(raw)
        except ValueError as exc:
            logger.debug("viewer %s sent an unreadable message: %s", viewer.id, exc)
            return ActionResult.rejected(str(exc))
        return await self.handle(viewer, message)

    async def handle(self, viewer: Viewer, message: dict[str, Any]) -> ActionResult:
        try:
            self._schemas.validate("action", message)
        except ValidationError as exc:
            logger.debug("viewer %s sent an invalid envelope: %s", viewer.id, exc.message)
            return ActionResult.rejected(exc.message)
        action = message["action"]
        auction_id = message["auction_id"]
        payload = message.get("payload") or {}

        if action == "join":
            await self._engine.join(auction_id, viewer)
            return ActionResult.ok()
        if action == "leave":
            self._engine.leave(auction_id, viewer)
            return ActionResult.ok()

        result = await self._validated_dispatch(auction_id, action, payload)
        if not result.accepted and self._acknowledge_rejections:
            self._engine.fanout.send(
                viewer,
                ACTION_REJECTED,
                auction_id,
                {"action": action, "reason": result.reason},
            )
        return result

    async def _validated_dispatch(
        self, auction_id: str, action: str, payload: dict[str, Any]
    ) -> ActionResult:
        if self._schemas.has(action):
            try:
                self._schemas.validate(action, payload)
            except ValidationError as exc:
                logger.debug("invalid %s payload for auction %s: %s", action, auction_id, exc.message)
                return ActionResult.rejected(exc.message)
        return await self._engine.dispatch(auction_id, action, payload)
