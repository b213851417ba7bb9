import logging
from abc import ABC
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar, Union

from leaderlocator.configuration import ClusterConfiguration, NIMBUS_HOST, NIMBUS_SEEDS
from leaderlocator.errors import ConfigurationError, SeedUnreachableError, LeaderConnectError, LeaderNotFoundError
from leaderlocator.transport import AbstractSession, SessionFactory, ZmqSession

logger = logging.getLogger(__name__)

T = TypeVar('T')

Configuration = Union[ClusterConfiguration, Mapping[str, Any]]


@dataclass
class Attempt(ABC):
    """Outcome of asking one seed host for the leader."""
    host: str


@dataclass
class Connected(Attempt):
    session: AbstractSession


@dataclass
class Retry(Attempt):
    reason: SeedUnreachableError


@dataclass
class Fatal(Attempt):
    error: LeaderConnectError


def resolve_identity(configuration: ClusterConfiguration, identity: Optional[str] = None) -> Optional[str]:
    """
    Pick the identity the calls are made as.

    The configured override wins over the identity passed by the caller.

    :param configuration: the cluster configuration.
    :param identity: identity requested by the caller, or None.
    :return: the identity to use, or None for anonymous calls.
    """
    if configuration.identity_override:
        if identity and identity != configuration.identity_override:
            logger.warning("You have specified %s as identity and %s in config, config will take precedence",
                           identity, configuration.identity_override)
        return configuration.identity_override
    return identity or None


def resolve_seeds(configuration: ClusterConfiguration) -> list[str]:
    """
    Pick the hosts to ask for the leader, in the order they have to be tried.

    :param configuration: the cluster configuration.
    :return: the deprecated single host if it is set, the configured seeds otherwise.
    :raises ConfigurationError: if no host is configured at all.
    """
    if configuration.legacy_host is not None and configuration.legacy_host.strip():
        logger.warning("Using deprecated config %s for backward compatibility. "
                       "Please update your configuration so it only has config %s", NIMBUS_HOST, NIMBUS_SEEDS)
        return [configuration.legacy_host]

    if not configuration.seeds:
        raise ConfigurationError(f"No seed hosts configured, set config {NIMBUS_SEEDS}")
    return list(configuration.seeds)


def as_configuration(configuration: Configuration) -> ClusterConfiguration:
    if isinstance(configuration, ClusterConfiguration):
        return configuration
    return ClusterConfiguration.from_mapping(configuration)


class LeaderLocator:
    """
    Finds the leader of the cluster through its seed hosts and opens a session to it.

    Seeds are tried one after another in the configured order. A seed that cannot be
    reached or does not know the leader is skipped, but failing to connect to the leader
    a seed has named stops the search.
    """

    def __init__(self, session_factory: SessionFactory = ZmqSession.open) -> None:
        """
        :param session_factory: opens a session to ``(host, port, identity, timeout)``.
        """
        self.session_factory = session_factory

    def resolve_leader(self,
                       configuration: Configuration,
                       identity: Optional[str] = None,
                       timeout: Optional[int] = None) -> AbstractSession:
        """
        Open a session to the current leader.

        :param configuration: the cluster configuration or a config mapping.
        :param identity: identity to make the calls as, unless the configuration overrides it.
        :param timeout: per attempt timeout in milliseconds, defaults to the configured one.
        :return: a session to the leader, owned by the caller.
        :raises ConfigurationError: if no seed host or no port is configured.
        :raises LeaderConnectError: if the leader named by a seed could not be connected to.
        :raises LeaderNotFoundError: if no seed host led to the leader.
        """
        configuration = as_configuration(configuration)
        identity = resolve_identity(configuration, identity)
        seeds = resolve_seeds(configuration)
        port = configuration.require_port()
        if timeout is None:
            timeout = configuration.timeout

        for host in seeds:
            attempt = self.attempt(host, port, identity, timeout)
            if isinstance(attempt, Connected):
                return attempt.session
            elif isinstance(attempt, Fatal):
                raise attempt.error

        raise LeaderNotFoundError(seeds)

    def attempt(self, host: str, port: int, identity: Optional[str], timeout: Optional[int]) -> Attempt:
        """
        Ask a single seed host for the leader and connect to it.

        :return: the session to the leader, a reason to try the next seed, or a fatal error.
        """
        session = None
        try:
            session = self.session_factory(host, port, identity, timeout)
            leader = session.query_leader()
            if leader is None:
                reason = SeedUnreachableError(host)
                logger.warning("%s, will retry with a different seed host", reason)
                return Retry(host, reason)

            logger.info("Found leader %s", leader.address)
            if leader.host == host and leader.port == port:
                leader_session, session = session, None
                return Connected(host, leader_session)
        except Exception as err:
            logger.warning("Ignoring exception while trying to get leader info from %s, "
                           "will retry with a different seed host", host, exc_info=err)
            return Retry(host, SeedUnreachableError(host, err))
        finally:
            if session is not None:
                session.close()

        try:
            return Connected(leader.host, self.session_factory(leader.host, leader.port, identity, timeout))
        except Exception as err:
            return Fatal(leader.host, LeaderConnectError(leader, err))

    def with_leader(self,
                    configuration: Configuration,
                    callback: Callable[[AbstractSession], T],
                    identity: Optional[str] = None) -> T:
        """
        Call ``callback`` with a session to the leader and close the session afterwards.

        :return: whatever the callback returns.
        """
        with self.resolve_leader(configuration, identity) as session:
            return callback(session)


default_locator = LeaderLocator()


def get_client(configuration: Configuration, timeout: Optional[int] = None) -> AbstractSession:
    return default_locator.resolve_leader(configuration, None, timeout)


def get_client_as(configuration: Configuration,
                  identity: Optional[str],
                  timeout: Optional[int] = None) -> AbstractSession:
    return default_locator.resolve_leader(configuration, identity, timeout)


def with_leader(configuration: Configuration,
                callback: Callable[[AbstractSession], T],
                identity: Optional[str] = None) -> T:
    return default_locator.with_leader(configuration, callback, identity)
