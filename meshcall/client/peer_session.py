"""Peer Session Manager - 원격 참여자 1명과의 피어 링크 관리

세션마다 asyncio.Lock 하나로 협상 단계(원격 적용, 로컬 생성, candidate flush,
재구성)를 직렬화한다. 링크를 새로 만들 때마다 generation이 증가하며, 이전
generation의 링크 이벤트와 재연결 타이머는 무시된다.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from meshcall.client.interfaces import (
    IceCandidate,
    PeerLink,
    PeerLinkConfig,
    PeerLinkEvents,
    PeerLinkFactory,
    SessionDescription,
    SignalingChannel,
    TransportState,
)
from meshcall.client.media import LocalMedia
from meshcall.client.reconnect import ReconnectPolicy
from meshcall.client.state_machine import ConnectionStateMachine, NegotiationRole, PeerLinkState
from meshcall.core.exceptions import MeshcallError, NegotiationError, TransportFailure
from meshcall.schemas.signaling import (
    AnswerMessage,
    IceCandidateMessage,
    OfferMessage,
    WireModel,
)

logger = logging.getLogger(__name__)


class PeerSessionManager:
    """원격 참여자별 세션

    역할(offerer/answerer)은 생성 시 고정되며 재구성 후에도 유지된다.
    """

    def __init__(
        self,
        remote_id: str,
        remote_name: str,
        role: NegotiationRole,
        *,
        room_id: str,
        signaling: SignalingChannel,
        link_factory: PeerLinkFactory,
        link_config: PeerLinkConfig | None = None,
        local_media: LocalMedia | None = None,
        policy: ReconnectPolicy | None = None,
        on_remote_track: Callable[[str, Any], None] | None = None,
        on_peer_lost: Callable[["PeerSessionManager"], Awaitable[None]] | None = None,
    ):
        self.remote_id = remote_id
        self.remote_name = remote_name
        self.role = role
        self.room_id = room_id

        self._signaling = signaling
        self._link_factory = link_factory
        self._link_config = link_config or PeerLinkConfig()
        self._local_media = local_media
        self._policy = policy or ReconnectPolicy()
        self._on_remote_track = on_remote_track
        self._on_peer_lost = on_peer_lost

        self._machine = ConnectionStateMachine(remote_id)
        self._lock = asyncio.Lock()
        self._link: PeerLink | None = None
        self._generation = 0
        self._pending_candidates: list[IceCandidate] = []
        self._remote_description_set = False
        self._awaiting_answer = False
        self._attempts = 0
        self._reconnect_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    # ===== 조회 =====

    @property
    def state(self) -> PeerLinkState:
        return self._machine.state

    @property
    def attempts(self) -> int:
        """현재 실패 구간에서 사용한 재구성 횟수"""
        return self._attempts

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending_candidate_count(self) -> int:
        return len(self._pending_candidates)

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    # ===== 공개 동작 =====

    async def start(self) -> None:
        """링크 생성 후 협상 시작 (offerer는 offer 전송)"""
        async with self._lock:
            if self._machine.state is not PeerLinkState.NEW:
                return
            self._machine.transition(PeerLinkState.NEGOTIATING)
            self._open_link()
            if self.role is NegotiationRole.OFFERER:
                await self._offer_or_fail()

    async def handle_offer(self, description: SessionDescription) -> None:
        """원격 offer 적용 후 answer 전송

        이미 연결됐거나 원격 description이 적용된 링크에 offer가 오면 원격이
        링크를 재구성한 것이므로 로컬 링크도 새로 만든다 (재시도 횟수 미사용).
        """
        async with self._lock:
            if self._machine.is_closed:
                return

            state = self._machine.state
            if (
                state in (PeerLinkState.CONNECTED, PeerLinkState.DEGRADED)
                or self._remote_description_set
                or self._awaiting_answer
            ):
                logger.info(f"Peer {self.remote_id} renegotiating, replacing link")
                self._cancel_reconnect()
                await self._close_link()
                self._open_link()

            self._machine.transition(PeerLinkState.NEGOTIATING)
            if self._link is None:
                self._open_link()

            try:
                await self._link.set_remote_description(description)
                self._remote_description_set = True
                await self._flush_candidates()
                answer = await self._link.create_answer()
                effective = await self._link.set_local_description(answer)
            except NegotiationError as e:
                await self._fail(e)
                return

            await self._send(
                AnswerMessage(target_user_id=self.remote_id, answer=effective, room_id=self.room_id)
            )

    async def handle_answer(self, description: SessionDescription) -> None:
        """원격 answer 적용

        보낸 offer가 없는 상태에서 온 answer는 협상 실패로 보고 링크를 재구성한다.
        """
        async with self._lock:
            if self._machine.is_closed:
                return

            state = self._machine.state
            if state is PeerLinkState.NEW:
                logger.warning(f"Answer from {self.remote_id} before negotiation started, ignored")
                return
            if not self._awaiting_answer or state not in (
                PeerLinkState.NEGOTIATING,
                PeerLinkState.RECONNECTING,
            ):
                await self._fail(
                    NegotiationError(f"Unexpected answer from {self.remote_id} in state {state.value}")
                )
                return

            try:
                await self._link.set_remote_description(description)
            except NegotiationError as e:
                await self._fail(e)
                return

            self._awaiting_answer = False
            self._remote_description_set = True
            self._machine.transition(PeerLinkState.NEGOTIATING)
            await self._flush_candidates()

    async def handle_candidate(self, candidate: IceCandidate) -> None:
        """원격 candidate 적용 (원격 description 적용 전이면 버퍼링)"""
        async with self._lock:
            if self._machine.is_closed:
                return
            if self._link is None or not self._remote_description_set:
                self._pending_candidates.append(candidate)
                return
            await self._apply_candidate(candidate)

    async def close(self) -> None:
        """세션 종료 (여러 번 호출해도 안전)

        진행 중인 협상 단계가 끝난 뒤 링크를 정확히 한 번 닫는다.
        """
        self._cancel_reconnect()
        async with self._lock:
            await self._shutdown()

    # ===== 링크 관리 =====

    def _open_link(self) -> None:
        self._generation += 1
        generation = self._generation
        events = PeerLinkEvents(
            on_remote_track=lambda track: self._handle_remote_track(generation, track),
            on_local_candidate=lambda candidate: self._spawn(
                self._send_local_candidate(generation, candidate)
            ),
            on_connection_state_change=lambda state: self._spawn(
                self._handle_transport_state(generation, state)
            ),
        )
        self._link = self._link_factory.create(self._link_config, events)
        if self._local_media:
            for track in self._local_media.tracks:
                self._link.add_local_track(track)
        logger.debug(f"Peer {self.remote_id}: link generation {generation} opened")

    async def _close_link(self) -> None:
        link, self._link = self._link, None
        self._generation += 1
        self._remote_description_set = False
        self._awaiting_answer = False
        self._pending_candidates.clear()
        if link is not None:
            await link.close()

    async def _offer_or_fail(self) -> None:
        try:
            offer = await self._link.create_offer()
            effective = await self._link.set_local_description(offer)
        except NegotiationError as e:
            await self._fail(e)
            return

        self._awaiting_answer = True
        await self._send(
            OfferMessage(target_user_id=self.remote_id, offer=effective, room_id=self.room_id)
        )

    async def _flush_candidates(self) -> None:
        pending, self._pending_candidates = self._pending_candidates, []
        for candidate in pending:
            await self._apply_candidate(candidate)

    async def _apply_candidate(self, candidate: IceCandidate) -> None:
        try:
            await self._link.add_remote_candidate(candidate)
        except NegotiationError as e:
            logger.warning(f"Failed to add ICE candidate from {self.remote_id}: {e}")

    # ===== 실패 처리 / 재연결 =====

    async def _fail(self, error: MeshcallError) -> None:
        """링크 실패 처리 (락 보유 상태에서 호출)

        재시도 예산이 남았으면 지연 후 재구성을 예약하고, 없으면 세션을 닫고
        peer-lost를 보고한다.
        """
        state = self._machine.state
        if state in (PeerLinkState.CLOSED, PeerLinkState.DEGRADED):
            return

        logger.warning(f"Peer {self.remote_id} degraded: {error}")
        self._machine.transition(PeerLinkState.DEGRADED)

        next_attempt = self._attempts + 1
        if not self._policy.allows(next_attempt):
            await self._give_up()
            return

        delay = self._policy.delay_for(next_attempt)
        logger.info(f"Rebuilding link to {self.remote_id} in {delay:.1f}s (attempt {next_attempt})")
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(delay, self._generation)
        )

    async def _reconnect_after(self, delay: float, generation: int) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None
            # 대기 중 복구/종료/교체된 경우 no-op
            if generation != self._generation or self._machine.state is not PeerLinkState.DEGRADED:
                return
            await self._rebuild()

    async def _rebuild(self) -> None:
        self._attempts += 1
        logger.info(f"Rebuilding link to {self.remote_id} (attempt {self._attempts})")
        await self._close_link()
        self._machine.transition(PeerLinkState.RECONNECTING)
        self._open_link()
        if self.role is NegotiationRole.OFFERER:
            await self._offer_or_fail()

    def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _give_up(self) -> None:
        logger.warning(f"Peer {self.remote_id} lost after {self._attempts} rebuild attempt(s)")
        await self._shutdown()
        if self._on_peer_lost:
            self._spawn(self._on_peer_lost(self))

    async def _shutdown(self) -> None:
        if self._machine.is_closed:
            return
        self._cancel_reconnect()
        await self._close_link()
        self._machine.transition(PeerLinkState.CLOSED)

        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        logger.info(f"Peer session {self.remote_id} closed")

    # ===== 링크 이벤트 =====

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"Peer {self.remote_id} event handling failed: {task.exception()}",
                exc_info=task.exception(),
            )

    def _handle_remote_track(self, generation: int, track: Any) -> None:
        if generation != self._generation or self._machine.is_closed:
            return
        if self._on_remote_track:
            self._on_remote_track(self.remote_id, track)

    async def _send_local_candidate(self, generation: int, candidate: IceCandidate) -> None:
        if generation != self._generation or self._machine.is_closed:
            return
        await self._send(
            IceCandidateMessage(
                target_user_id=self.remote_id,
                candidate=candidate,
                room_id=self.room_id,
            )
        )

    async def _handle_transport_state(self, generation: int, state: TransportState) -> None:
        async with self._lock:
            if generation != self._generation or self._machine.is_closed:
                return

            if state is TransportState.CONNECTED:
                self._cancel_reconnect()
                if self._machine.state is not PeerLinkState.CONNECTED:
                    self._machine.transition(PeerLinkState.CONNECTED)
                    logger.info(f"Peer {self.remote_id} connected")
            elif state in (TransportState.DISCONNECTED, TransportState.FAILED):
                await self._fail(TransportFailure(self.remote_id, state.value))

    async def _send(self, message: WireModel) -> None:
        try:
            await self._signaling.send(message)
        except ConnectionError as e:
            logger.warning(f"Signaling send to {self.remote_id} failed: {e}")
