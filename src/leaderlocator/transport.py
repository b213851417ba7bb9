from __future__ import annotations

import pickle
from abc import ABC, abstractmethod
from typing import Callable, Optional

import zmq

from leaderlocator.errors import TransportError, RemoteError
from leaderlocator.messages import Message, Request, LeaderInfo, GetLeaderRequest, GetLeaderResponse, \
    PingRequest, PingResponse, ErrorResponse


class AbstractSession(ABC):
    """
    A connection to a single coordinator node.

    The session is exclusively owned by whoever opened it and must be closed by them.
    It can be used as a context manager to make sure it gets closed.
    """

    def __init__(self, host: str, port: int, identity: Optional[str] = None, timeout: Optional[int] = None) -> None:
        """
        :param host: host of the node.
        :param port: port of the node.
        :param identity: identity the calls are made as, or None for anonymous calls.
        :param timeout: timeout of every call in milliseconds, or None to wait forever.
        """
        self.host = host
        self.port = port
        self.identity = identity
        self.timeout = timeout

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    @abstractmethod
    def closed(self) -> bool:
        ...

    @abstractmethod
    def call(self, request: Request) -> Message:
        """
        Send a request to the node and wait for its response.

        :param request: the request to send.
        :return: the response of the node.
        :raises TransportError: if the node could not be reached or answered with an error.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """
        Close the session. Closing an already closed session does nothing.
        """
        ...

    def query_leader(self) -> Optional[LeaderInfo]:
        """
        Ask the node where the current leader is.

        :return: the leader info, or None if the node does not know the leader.
        """
        response = self.call(GetLeaderRequest(identity=self.identity))
        if not isinstance(response, GetLeaderResponse):
            raise RemoteError(f"Unexpected response to leader query from {self.address}: {response!r}")
        return response.leader

    def __enter__(self) -> AbstractSession:
        return self

    def __exit__(self, exc_type: type[Exception], exc_val: Exception, exc_tb) -> None:
        self.close()


SessionFactory = Callable[[str, int, Optional[str], Optional[int]], AbstractSession]


class ZmqSession(AbstractSession):
    """
    Session over a ZeroMQ REQ socket.

    Opening the session pings the node, so an unreachable node fails on open
    rather than on the first call. The ping is bounded by ``connect_timeout`` when
    the session has no timeout of its own.

    A call that fails on the socket closes the session, the REQ socket cannot be
    used again once a request went unanswered.
    """

    connect_timeout = 10000

    def __init__(self,
                 host: str,
                 port: int,
                 identity: Optional[str] = None,
                 timeout: Optional[int] = None,
                 context: Optional[zmq.Context] = None) -> None:
        super().__init__(host, port, identity, timeout)
        self.context = context or zmq.Context.instance()
        self.socket: Optional[zmq.Socket] = None
        self._closed = False

    @classmethod
    def open(cls, host: str, port: int, identity: Optional[str] = None, timeout: Optional[int] = None) -> ZmqSession:
        session = cls(host, port, identity, timeout)
        try:
            session.connect()
        except BaseException:
            session.close()
            raise
        return session

    def url(self) -> str:
        return f"tcp://{self.host}:{self.port}"

    @property
    def closed(self) -> bool:
        return self._closed

    def set_timeout(self, timeout: Optional[int]) -> None:
        # -1 blocks until the node answers
        timeout = -1 if timeout is None else timeout
        self.socket.setsockopt(zmq.RCVTIMEO, timeout)
        self.socket.setsockopt(zmq.SNDTIMEO, timeout)

    def connect(self) -> None:
        try:
            self.socket = self.context.socket(zmq.REQ)
            self.socket.setsockopt(zmq.LINGER, 0)
            self.set_timeout(self.connect_timeout if self.timeout is None else self.timeout)
            self.socket.connect(self.url())
        except zmq.ZMQError as err:
            raise TransportError(f"Failed to connect to {self.url()}: {err}") from err

        response = self.call(PingRequest(identity=self.identity))
        if not isinstance(response, PingResponse):
            raise RemoteError(f"Unexpected response to ping from {self.address}: {response!r}")

        if self.timeout is None:
            self.set_timeout(None)

    def call(self, request: Request) -> Message:
        if self._closed or self.socket is None:
            raise TransportError(f"Session to {self.address} is not open")

        try:
            self.socket.send_pyobj(request)
            response = self.socket.recv_pyobj()
        except zmq.Again as err:
            self.close()
            raise TransportError(f"Timed out waiting for {self.url()}") from err
        except zmq.ZMQError as err:
            self.close()
            raise TransportError(f"Call to {self.url()} failed: {err}") from err
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError) as err:
            raise TransportError(f"Could not decode the response of {self.url()}: {err}") from err

        if isinstance(response, ErrorResponse):
            raise RemoteError(f"{self.address} answered with an error: {response.error}")
        return response

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.socket is not None:
            self.socket.close(linger=0)
