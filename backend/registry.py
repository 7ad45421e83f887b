# registry.py — One board session (controller + drag gesture) per signed-in user
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Request

from board import BoardController, BoardSession, DEFAULT_PROJECT_ID, LOAD_TIMEOUT_SECONDS
from drag import DragGesture
from gateway import PersistenceGateway
from schemas import BoardUser

logger = logging.getLogger("mons.registry")


@dataclass
class BoardEntry:
    controller: BoardController
    drag: DragGesture
    ready: "asyncio.Future"


class BoardRegistry:
    def __init__(
        self,
        gateway: PersistenceGateway,
        project_id: int = DEFAULT_PROJECT_ID,
        load_timeout: float = LOAD_TIMEOUT_SECONDS,
    ):
        self.gateway = gateway
        self.project_id = project_id
        self.load_timeout = load_timeout
        self._entries: Dict[int, BoardEntry] = {}

    async def open(self, user: BoardUser) -> BoardEntry:
        """Board of `user`, created and loaded on first use."""
        entry = self._entries.get(user.id)
        if entry is None:
            controller = BoardController(
                BoardSession(user=user, project_id=self.project_id),
                self.gateway,
                load_timeout=self.load_timeout,
            )
            entry = BoardEntry(
                controller=controller,
                drag=DragGesture(controller),
                ready=asyncio.ensure_future(self._prepare(controller)),
            )
            self._entries[user.id] = entry
            logger.info(f"Opened board session for {user.email}")
        # Concurrent first requests share one load; a cancelled request must not cancel it
        await asyncio.shield(entry.ready)
        return entry

    async def _prepare(self, controller: BoardController) -> None:
        if not self.gateway.configured:
            await controller.load()
            return

        user = controller.session.user
        try:
            stored = await asyncio.wait_for(self.gateway.ensure_user(user), timeout=self.load_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out mapping {user.email} onto the store")
            stored = None

        # Stored tasks must reference a users row
        if stored is None:
            logger.warning(f"No stored user for {user.email}; board runs unpersisted")
            await controller.load(offline=True)
            return
        controller.session.user = stored
        await controller.load()

    async def reload(self, entry: BoardEntry) -> bool:
        """Reload a board, mapping its user onto the store again if needed."""
        entry.drag.cancel()
        await self._prepare(entry.controller)
        return entry.controller.session.persisted

    def get(self, user_id: int) -> Optional[BoardEntry]:
        return self._entries.get(user_id)

    async def discard(self, user_id: int) -> None:
        entry = self._entries.pop(user_id, None)
        if entry is not None:
            await entry.controller.drain()
            logger.info(f"Closed board session for user #{user_id}")

    async def close(self) -> None:
        for user_id in list(self._entries):
            await self.discard(user_id)


def get_registry(request: Request) -> BoardRegistry:
    return request.app.state.boards
