import asyncio
import logging
from typing import Dict, Optional, Set
from fastapi import WebSocket

import config
from schemas import EnvelopeError, decode_envelope, is_join, is_relay

logger = logging.getLogger(__name__)

DROP_OLDEST = "drop_oldest"
DISCONNECT = "disconnect"
POLICIES = (DROP_OLDEST, DISCONNECT)

# "Try again later": the server is shedding a consumer that cannot keep up
SLOW_CONSUMER_CLOSE_CODE = 1013


class Peer:
    """One accepted socket with a bounded outbound queue drained by its own task."""

    def __init__(self, ws: WebSocket, queue_size: int, policy: str):
        self.ws = ws
        self.policy = policy
        self.project_id: Optional[int] = None
        # Every channel this peer was added to; may hold stale ones after a rejoin
        self.channels: Set[int] = set()
        self.open = True
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None
        self._closer: Optional[asyncio.Task] = None

    def start(self):
        self._writer = asyncio.create_task(self._drain())

    def send(self, text: str) -> bool:
        """Enqueue ``text``; False when the frame was not queued."""
        if not self.open:
            return False
        try:
            self._queue.put_nowait(text)
            return True
        except asyncio.QueueFull:
            pass
        if self.policy == DROP_OLDEST:
            self._queue.get_nowait()
            self._queue.put_nowait(text)
            self.dropped += 1
            logger.warning(f"Outbound queue full, dropped oldest frame (project {self.project_id}, total dropped {self.dropped})")
            return True
        logger.warning(f"Outbound queue full, disconnecting slow consumer (project {self.project_id})")
        self.open = False
        self._closer = asyncio.create_task(self._close(SLOW_CONSUMER_CLOSE_CODE))
        return False

    async def _drain(self):
        while True:
            text = await self._queue.get()
            try:
                await self.ws.send_text(text)
            except Exception as e:
                # Removal from channels happens on this peer's own close event
                logger.debug(f"Send failed, marking peer closed: {e}")
                self.open = False
                return

    async def _close(self, code: int):
        try:
            await self.ws.close(code=code)
        except Exception as e:
            logger.debug(f"Close failed: {e}")

    def stop(self):
        self.open = False
        if self._writer and not self._writer.done():
            self._writer.cancel()


class Hub:
    """Project-scoped fan-out of chat and whiteboard frames.

    Channels map a project id to the set of peers that joined it. Frames of a
    relay type are forwarded, unmodified, to every open member of the channel
    named in the frame except the sender.
    """

    def __init__(self, queue_size: int = None, policy: str = None, leave_on_rejoin: bool = None):
        self.queue_size = config.WS_OUTBOUND_QUEUE_SIZE if queue_size is None else queue_size
        self.policy = config.WS_SLOW_CONSUMER_POLICY if policy is None else policy
        self.leave_on_rejoin = config.WS_LEAVE_ON_REJOIN if leave_on_rejoin is None else leave_on_rejoin
        if self.policy not in POLICIES:
            raise ValueError(f"Unknown slow consumer policy {self.policy!r}, expected one of {POLICIES}")
        if self.queue_size < 1:
            raise ValueError("Outbound queue size must be positive")
        self.channels: Dict[int, Set[Peer]] = {}
        self.peers: Set[Peer] = set()

    async def connect(self, ws: WebSocket) -> Peer:
        await ws.accept()
        peer = Peer(ws, self.queue_size, self.policy)
        peer.start()
        self.peers.add(peer)
        logger.info(f"New WebSocket connection. Total connections: {len(self.peers)}")
        return peer

    def handle(self, peer: Peer, raw: str):
        try:
            env = decode_envelope(raw)
        except EnvelopeError as e:
            logger.warning(f"WebSocket message error: {e.reason}")
            return
        if is_join(env):
            self.join(peer, env.project_id)
        elif is_relay(env):
            self.broadcast(env.project_id, raw, sender=peer)

    def join(self, peer: Peer, project_id: int):
        if self.leave_on_rejoin and peer.project_id is not None and peer.project_id != project_id:
            self._leave(peer, peer.project_id)
        peer.project_id = project_id
        peer.channels.add(project_id)
        self.channels.setdefault(project_id, set()).add(peer)
        logger.info(f"Client joined project {project_id}. Members: {len(self.channels[project_id])}")

    def broadcast(self, project_id: int, raw: str, sender: Peer = None) -> int:
        """Queue ``raw`` for every open member except ``sender``; returns how many were queued."""
        members = self.channels.get(project_id)
        if not members:
            return 0
        sent = 0
        for peer in list(members):
            if peer is sender or not peer.open:
                continue
            if peer.send(raw):
                sent += 1
        return sent

    def _leave(self, peer: Peer, project_id: int):
        peer.channels.discard(project_id)
        members = self.channels.get(project_id)
        if members is None:
            return
        members.discard(peer)
        if not members:
            del self.channels[project_id]

    def disconnect(self, peer: Peer):
        for project_id in list(peer.channels):
            self._leave(peer, project_id)
        peer.stop()
        if peer in self.peers:
            self.peers.remove(peer)
            logger.info(f"WebSocket connection closed. Total connections: {len(self.peers)}")

    def members(self, project_id: int) -> Set[Peer]:
        return set(self.channels.get(project_id, ()))

    def channel_sizes(self) -> Dict[int, int]:
        return {pid: len(members) for pid, members in self.channels.items()}

    @property
    def connection_count(self) -> int:
        return len(self.peers)
