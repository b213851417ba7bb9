from typing import Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from leaderlocator.messages import LeaderInfo


class LocatorError(Exception):
    """Base class for every error raised while locating the leader."""


class ConfigurationError(LocatorError):
    """The configuration does not allow to contact any node."""


class TransportError(LocatorError):
    """Connecting to a node or calling it failed."""


class RemoteError(TransportError):
    """The node answered the call with an error."""


class SeedUnreachableError(LocatorError):
    """
    A seed host could not be asked for the leader or did not know it.

    Only used to describe skipped seeds in the logs, never raised to the caller.
    """

    def __init__(self, host: str, cause: Optional[BaseException] = None) -> None:
        if cause is None:
            message = f"Seed host {host} has no leader info"
        else:
            message = f"Seed host {host} is unreachable: {cause}"
        super().__init__(message)
        self.host = host
        self.cause = cause


class LeaderConnectError(LocatorError):
    """A seed named the leader, but connecting to that leader failed."""

    def __init__(self, leader: "LeaderInfo", cause: Exception) -> None:
        super().__init__(f"Failed to create a client for the leader {leader.address}: {cause}")
        self.leader = leader
        self.cause = cause


class LeaderNotFoundError(LocatorError):
    """No seed host led to the leader."""

    def __init__(self, seeds: Sequence[str]) -> None:
        super().__init__(f"Could not find leader from seed hosts {list(seeds)}. "
                         f"Did you specify a valid list of hosts for config nimbus.seeds?")
        self.seeds = list(seeds)
