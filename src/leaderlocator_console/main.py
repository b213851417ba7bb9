import argparse
import logging
import sys
from typing import Optional, Sequence

from leaderlocator.client import get_client_as
from leaderlocator.configuration import ClusterConfiguration
from leaderlocator.errors import LocatorError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Find the leader of a coordinator cluster')

    parser.add_argument('--seeds', dest='seeds', nargs='+', default=[],
                        help='Seed hosts to ask for the leader, in order')

    parser.add_argument('--host', dest='legacy_host', default=None,
                        help='Single coordinator host (deprecated, use --seeds)')

    parser.add_argument('--port', dest='port', type=int, default=6627,
                        help='Port of the coordinator nodes')

    parser.add_argument('--user', dest='user', default=None,
                        help='Identity to make the calls as')

    parser.add_argument('--do-as-user', dest='do_as_user', default=None,
                        help='Identity overriding --user')

    parser.add_argument('--timeout', dest='timeout', type=int, default=None,
                        help='Timeout of every connection and call in milliseconds')

    parser.add_argument('--verbose', dest='verbose', action='store_true',
                        help='Log every contacted seed host')

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    configuration = ClusterConfiguration(seeds=args.seeds,
                                         port=args.port,
                                         legacy_host=args.legacy_host,
                                         identity_override=args.do_as_user,
                                         timeout=args.timeout)

    try:
        with get_client_as(configuration, args.user) as session:
            print(session.address)
    except LocatorError as err:
        print(err, file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
