import logging
import pickle
from threading import Thread
from typing import Callable, Optional

import zmq

from leaderlocator.messages import Message, LeaderInfo, PingRequest, PingResponse, GetLeaderRequest, \
    GetLeaderResponse, ErrorResponse

logger = logging.getLogger(__name__)


class LeaderInfoServer:
    """
    Answers leader queries on behalf of a coordinator node.

    :param host: host to bind to.
    :param port: port to bind to.
    :param leader_provider: returns the current leader as known by this node, or None.
    """

    poll_interval = 100

    def __init__(self, host: str, port: int, leader_provider: Callable[[], Optional[LeaderInfo]]) -> None:
        self.worker: Optional[Thread] = None
        self.host = host
        self.port = port
        self.leader_provider = leader_provider
        self.context = zmq.Context.instance()

        self.rep_socket = self.context.socket(zmq.REP)
        self.rep_socket.setsockopt(zmq.LINGER, 0)
        self.rep_socket.bind(self.url())

        self.is_running = False

    def url(self) -> str:
        return f"tcp://{self.host}:{self.port}"

    def handle(self, request: Message) -> Message:
        if isinstance(request, PingRequest):
            return PingResponse()
        elif isinstance(request, GetLeaderRequest):
            return GetLeaderResponse(leader=self.leader_provider())
        return ErrorResponse(error=f"Unsupported request {type(request).__name__}")

    def listen(self) -> None:
        poller = zmq.Poller()
        poller.register(self.rep_socket, zmq.POLLIN)
        try:
            while self.is_running:
                if not poller.poll(self.poll_interval):
                    continue
                frame = self.rep_socket.recv()
                try:
                    response = self.handle(pickle.loads(frame))
                except Exception as err:
                    logger.exception("Exception occurred on handling request")
                    response = ErrorResponse(error=str(err))
                self.rep_socket.send_pyobj(response)
        finally:
            self.rep_socket.close()

    def start(self) -> None:
        self.is_running = True
        self.worker = Thread(target=self.listen, daemon=True)
        self.worker.start()

    def stop(self) -> None:
        self.is_running = False
        if self.worker is not None:
            self.worker.join()
        elif not self.rep_socket.closed:
            self.rep_socket.close()
