from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from leaderlocator.errors import ConfigurationError

NIMBUS_SEEDS = "nimbus.seeds"
NIMBUS_HOST = "nimbus.host"
NIMBUS_THRIFT_PORT = "nimbus.thrift.port"
STORM_DO_AS_USER = "storm.doAsUser"
STORM_THRIFT_SOCKET_TIMEOUT_MS = "storm.thrift.socket.timeout.ms"


def _parse_int(conf: Mapping[str, Any], key: str) -> Optional[int]:
    value = conf.get(key)
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError as err:
        raise ConfigurationError(f"Config {key} must be an integer, got {value!r}") from err


def _parse_seeds(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [seed.strip() for seed in value.split(",") if seed.strip()]
    if not isinstance(value, Iterable):
        raise ConfigurationError(f"Config {NIMBUS_SEEDS} must be a list of hosts, got {value!r}")
    return [str(seed) for seed in value]


@dataclass
class ClusterConfiguration:
    """
    Settings needed to find the leader of a coordinator cluster.

    :param seeds: hostnames to ask for the leader, in the order they are tried.
    :param port: port every coordinator node listens on.
    :param legacy_host: deprecated single host, used instead of ``seeds`` when set.
    :param identity_override: identity to act as, takes precedence over the caller's one.
    :param timeout: per connection/call timeout in milliseconds, ``None`` waits forever.
    """
    seeds: list[str] = field(default_factory=list)
    port: Optional[int] = None
    legacy_host: Optional[str] = None
    identity_override: Optional[str] = None
    timeout: Optional[int] = None

    @classmethod
    def from_mapping(cls, conf: Mapping[str, Any]) -> "ClusterConfiguration":
        """
        Build a configuration from an already parsed config mapping.

        :param conf: mapping keyed by ``nimbus.seeds``, ``nimbus.host``, ``nimbus.thrift.port``,
                     ``storm.doAsUser`` and ``storm.thrift.socket.timeout.ms``.
        :return: the configuration.
        """
        legacy_host = conf.get(NIMBUS_HOST)
        identity_override = conf.get(STORM_DO_AS_USER)

        return cls(seeds=_parse_seeds(conf.get(NIMBUS_SEEDS)),
                   port=_parse_int(conf, NIMBUS_THRIFT_PORT),
                   legacy_host=None if legacy_host is None else str(legacy_host),
                   identity_override=None if identity_override is None else str(identity_override),
                   timeout=_parse_int(conf, STORM_THRIFT_SOCKET_TIMEOUT_MS))

    def require_port(self) -> int:
        if self.port is None:
            raise ConfigurationError(f"Config {NIMBUS_THRIFT_PORT} is required to connect to the leader")
        return self.port
