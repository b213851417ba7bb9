import socket
from threading import Thread
from typing import Optional, Union

import pytest
import zmq

from leaderlocator.client import LeaderLocator
from leaderlocator.configuration import ClusterConfiguration
from leaderlocator.errors import TransportError
from leaderlocator.messages import Message, Request, LeaderInfo, GetLeaderRequest, GetLeaderResponse, PingResponse
from leaderlocator.server import LeaderInfoServer
from leaderlocator.transport import AbstractSession

PORT = 6627


class FakeSession(AbstractSession):
    def __init__(self, cluster, host, port, identity, timeout, leader):
        super().__init__(host, port, identity, timeout)
        self.cluster = cluster
        self.leader = leader
        self.requests: list[Request] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def call(self, request: Request) -> Message:
        self.requests.append(request)
        if isinstance(self.leader, BaseException):
            raise self.leader
        if isinstance(request, GetLeaderRequest):
            return GetLeaderResponse(leader=self.leader)
        return PingResponse()

    def close(self) -> None:
        if not self._closed:
            self.cluster.events.append(("close", self.host, self.port))
        self._closed = True


class FakeCluster:
    """
    Session factory over an in-memory cluster.

    ``nodes`` maps ``(host, port)`` to what the node answers to a leader query: a leader info,
    None, or an exception to raise. Nodes missing from ``nodes`` cannot be connected to.
    """

    def __init__(self) -> None:
        self.nodes: dict[tuple[str, int], Union[Optional[LeaderInfo], BaseException]] = {}
        self.events: list[tuple[str, str, int]] = []
        self.opened: list[FakeSession] = []
        self.open_errors: dict[tuple[str, int], BaseException] = {}

    def __call__(self, host: str, port: int, identity: Optional[str], timeout: Optional[int]) -> FakeSession:
        if (host, port) in self.open_errors:
            self.events.append(("failed", host, port))
            raise self.open_errors[(host, port)]
        if (host, port) not in self.nodes:
            self.events.append(("failed", host, port))
            raise TransportError(f"{host}:{port} is unreachable")
        self.events.append(("open", host, port))
        session = FakeSession(self, host, port, identity, timeout, self.nodes[(host, port)])
        self.opened.append(session)
        return session

    @property
    def open_sessions(self) -> list[FakeSession]:
        return [session for session in self.opened if not session.closed]

    @property
    def attempted_hosts(self) -> list[str]:
        return [host for event, host, _ in self.events if event != "close"]


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def locator(cluster):
    return LeaderLocator(session_factory=cluster)


@pytest.fixture
def configuration():
    return ClusterConfiguration(seeds=["h1", "h2", "h3"], port=PORT)


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def free_port():
    return find_free_port()


@pytest.fixture
def leader_info_servers():
    servers = []

    def start_server(port: int, leader: Optional[LeaderInfo]) -> LeaderInfoServer:
        server = LeaderInfoServer("127.0.0.1", port, lambda: leader)
        server.start()
        servers.append(server)
        return server

    yield start_server

    for server in servers:
        server.stop()


@pytest.fixture
def raw_replier(free_port):
    """
    REP socket on ``free_port`` answering requests with the given raw frames, one per request.

    Once the frames run out the socket stops answering.
    """
    context = zmq.Context.instance()
    rep_socket = context.socket(zmq.REP)
    rep_socket.setsockopt(zmq.LINGER, 0)
    rep_socket.bind(f"tcp://127.0.0.1:{free_port}")
    workers = []

    def reply_with(*frames: bytes) -> None:
        def reply() -> None:
            for frame in frames:
                if not rep_socket.poll(2000):
                    return
                rep_socket.recv()
                rep_socket.send(frame)

        worker = Thread(target=reply, daemon=True)
        worker.start()
        workers.append(worker)

    yield reply_with

    for worker in workers:
        worker.join()
    rep_socket.close()
