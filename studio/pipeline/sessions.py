"""
Session registry — one StudioOrchestrator per studio session.

Sessions live in process memory; closing one stops its poller, cancels its
in-flight work and revokes its blobs. All sessions share a single backend
gateway (and therefore one transport / connection pool).
"""

import logging
from typing import Callable, Optional
from uuid import uuid4

from .. import metrics
from .animate import POLL_INTERVAL
from .gateway import BackendGateway, create_gateway
from .models import FlowMode
from .orchestrator import StudioOrchestrator

logger = logging.getLogger(__name__)


class SessionRegistry:
    def __init__(
        self,
        gateway_factory: Callable[[], BackendGateway] = create_gateway,
        poll_interval: float = POLL_INTERVAL,
    ):
        self._gateway_factory = gateway_factory
        self._gateway: Optional[BackendGateway] = None
        self.poll_interval = poll_interval
        self._sessions: dict[str, StudioOrchestrator] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    @property
    def gateway(self) -> BackendGateway:
        """Lazy-init the shared gateway on first session."""
        if self._gateway is None:
            self._gateway = self._gateway_factory()
        return self._gateway

    def create(self, mode: Optional[FlowMode] = None) -> StudioOrchestrator:
        session_id = uuid4().hex
        studio = StudioOrchestrator(
            self.gateway,
            poll_interval=self.poll_interval,
            session_id=session_id,
        )
        if mode is not None and mode != FlowMode.LANDING:
            studio.select_mode(mode)
        self._sessions[session_id] = studio
        metrics.inc_counter("sessions.created")
        metrics.set_gauge("active_sessions", len(self._sessions))
        logger.info(f"Session {session_id} created ({studio.store.mode.value})")
        return studio

    def get(self, session_id: str) -> Optional[StudioOrchestrator]:
        return self._sessions.get(session_id)

    async def close(self, session_id: str) -> bool:
        studio = self._sessions.pop(session_id, None)
        if studio is None:
            return False
        await studio.aclose()
        metrics.set_gauge("active_sessions", len(self._sessions))
        logger.info(f"Session {session_id} closed")
        return True

    async def aclose(self):
        for session_id in list(self._sessions):
            await self.close(session_id)
        if self._gateway is not None:
            await self._gateway.aclose()
            self._gateway = None
