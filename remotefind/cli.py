import argparse
import contextlib
import logging
import re
import sys
from typing import Optional, Sequence

import paramiko

from remotefind.actions import ActionExecutor, Printer
from remotefind.connector import Connector
from remotefind.criteria import compile_criteria
from remotefind.formatter import LS_TEMPLATE, Formatter
from remotefind.knownhosts import HostKeyRejected
from remotefind.local import LocalConnector
from remotefind.modespec import parse_mode_spec
from remotefind.rename import compile_rename
from remotefind.s3 import S3Connector
from remotefind.sftp import SFTPConnector
from remotefind.traversal import Finder

logger = logging.getLogger('remotefind')

PREDICATES = (
    'type', 'name', 'iname', 'regex', 'uid', 'gid', 'mtime', 'atime',
    'mmin', 'amin', 'size', 'mode', 'ctime', 'cmin', 'user', 'group',
)

DEFAULT_OUTPUT = ('%p', '\n')

_SFTP_TARGET_RE = re.compile(r'(?:(?P<user>[^@/:]+)@)?(?P<host>[^@/:]{2,}):(?P<path>.*)')


class _Predicate(argparse.Action):
    """Collects predicate tokens in command-line order."""

    def __call__(self, parser, namespace, values, option_string=None):
        predicates = list(getattr(namespace, self.dest) or [])
        predicates.append((option_string.lstrip('-'), values))
        setattr(namespace, self.dest, predicates)


class _Output(argparse.Action):
    """Selects the output template, the last print option wins."""

    def __call__(self, parser, namespace, values, option_string=None):
        if option_string == '-printf':
            output = (values, '')
        elif option_string == '-print0':
            output = ('%p', '\0')
        elif option_string == '-ls':
            output = (LS_TEMPLATE, '\n')
        else:
            output = DEFAULT_OUTPUT
        setattr(namespace, self.dest, output)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='remotefind',
        allow_abbrev=False,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description='Search a local, SFTP or S3 directory tree the way find(1) does.',
        epilog='tests are ANDed in order, -not negates the next test only.\n'
               'values starting with "-" that are not plain numbers need the "=" form:\n'
               '  remotefind host:/srv -size=-10k -chmod=go-w'
    )
    parser.add_argument('target', help='search root: [user@]host:path, s3://bucket/prefix or a local path')

    tests = parser.add_argument_group('tests')
    for name in PREDICATES:
        tests.add_argument(f'-{name}', dest='predicates', action=_Predicate, metavar='ARG')
    tests.add_argument('-empty', dest='predicates', action=_Predicate, nargs=0,
                       help='empty file, or empty directory when combined with -depth')
    tests.add_argument('-not', dest='predicates', action=_Predicate, nargs=0, help='negate the next test')

    traversal = parser.add_argument_group('traversal')
    traversal.add_argument('-maxdepth', type=int, help='do not descend below this depth')
    traversal.add_argument('-depth', action='store_true', help='process directory contents before the directory')
    traversal.add_argument('-sort', action='store_true', help='process entries in name order')
    traversal.add_argument('-realpath', action='store_true', help='resolve the search root on the server')

    actions = parser.add_argument_group('actions')
    actions.add_argument('-delete', action='store_true', help='delete matching entries, implies -depth')
    actions.add_argument('-chmod', metavar='MODE', help='change permissions, e.g. 0644 or u+x,go-w')
    actions.add_argument('-rename', metavar='EXPR', help='rename: s/old/new/[gi], y/abc/xyz/, lower or upper')
    actions.add_argument('-print', dest='output', action=_Output, nargs=0, help='print path and newline')
    actions.add_argument('-print0', dest='output', action=_Output, nargs=0, help='print path and NUL')
    actions.add_argument('-printf', dest='output', action=_Output, metavar='FORMAT', help='print using FORMAT')
    actions.add_argument('-ls', dest='output', action=_Output, nargs=0, help='print in ls -l format')

    connection = parser.add_argument_group('connection')
    connection.add_argument('--config_path', help='YAML file with connector settings')
    connection.add_argument('--port', type=int, help='SFTP port')
    connection.add_argument('--user', help='SFTP login name')
    connection.add_argument('--password', help='SFTP password')
    connection.add_argument('--identity', help='SFTP private key file')
    connection.add_argument('--known_hosts', help='known hosts file (default ~/.ssh/known_hosts)')
    connection.add_argument('--timeout', type=float, help='SFTP handshake timeout in seconds')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='more log output, repeatable')
    return parser


def make_connector(args: argparse.Namespace) -> tuple[Connector, str]:
    """Create the connector for ``args.target`` and return it with the search root."""
    target = args.target
    if target.startswith('s3://'):
        return S3Connector.from_yaml(args.config_path), target[len('s3://'):]
    match = _SFTP_TARGET_RE.fullmatch(target)
    if match is not None:
        connector = SFTPConnector.from_yaml(
            args.config_path,
            host=match.group('host'),
            username=match.group('user') or args.user,
            port=args.port,
            password=args.password,
            key_filename=args.identity,
            known_hosts=args.known_hosts,
            timeout=args.timeout
        )
        return connector, match.group('path') or '.'
    return LocalConnector(), target


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, stream=sys.stderr, format='remotefind: %(levelname)s: %(message)s')


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    output = args.output
    if output is None and not (args.delete or args.chmod is not None):
        output = DEFAULT_OUTPUT

    try:
        criteria = compile_criteria(args.predicates or [])
        mode_spec = parse_mode_spec(args.chmod) if args.chmod is not None else None
        rename = compile_rename(args.rename) if args.rename is not None else None
        connector, root = make_connector(args)
        printer = None
        if output is not None:
            template, eol = output
            printer = Printer(Formatter(template, connector.readlink), eol, sys.stdout)
    except (ValueError, OSError) as err:
        logger.error('%s', err)
        return 2

    executor = ActionExecutor(connector, delete=args.delete, mode_spec=mode_spec, rename=rename, printer=printer)
    try:
        with connector.connect():
            if args.realpath:
                root = connector.realpath(root)
            finder = Finder(
                connector, criteria, executor,
                max_depth=args.maxdepth,
                depth_first=args.depth or args.delete,
                sort=args.sort
            )
            finder.find(root)
            sys.stdout.flush()
    except HostKeyRejected as err:
        logger.error('%s', err)
        return 1
    except paramiko.SSHException as err:
        logger.error('%s', err)
        return 1
    except BrokenPipeError:
        with contextlib.suppress(Exception):
            sys.stdout.close()
        return 0
    except OSError as err:
        logger.error('%s', err)
        return 1
    return 0


if __name__ == '__main__':  # pragma: no cover
    raise SystemExit(main())
