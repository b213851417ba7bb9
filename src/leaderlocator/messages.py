from abc import ABC
from dataclasses import dataclass
from typing import Optional


class Message(ABC):
    ...


@dataclass(frozen=True)
class LeaderInfo:
    """
    Where the current leader of the cluster can be reached.
    """
    host: str
    port: int

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class Request(Message):
    identity: Optional[str] = None


@dataclass
class PingRequest(Request):
    ...


@dataclass
class GetLeaderRequest(Request):
    ...


@dataclass
class PingResponse(Message):
    ...


@dataclass
class GetLeaderResponse(Message):
    leader: Optional[LeaderInfo]


@dataclass
class ErrorResponse(Message):
    error: str
