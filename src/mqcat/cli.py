""" Command line interface: ``mqcat [options] URL COMMAND [arguments]``.

    The URL picks the backend (see :mod:`mqcat.url`); the command is one of
    publish, subscribe, request or info. Diagnostics go to standard error
    through :mod:`logging`; received messages go to standard output.
"""

import argparse
import logging
import os
import sys

from . import cancel
from . import dispatch
from . import duration
from . import transport
from . import url
from . import version
from .translate import TranslateError

log = logging.getLogger(__name__)

# Client libraries whose loggers are quiet unless -vv is given.
libraries = ('nats', 'pika', 'zenoh', 'centrifuge', 'websockets', 'asyncio')

log_format = '%(asctime)s %(levelname)s %(name)s: %(message)s'



class Parser(argparse.ArgumentParser):
    """ Every usage error is an ordinary failure, exit status 1.
    """

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, '%s: error: %s\n' % (self.prog, message))



def header(text):
    """ Parse a ``key: value`` header argument into a (key, value) tuple.
    """

    if ':' not in text:
        raise argparse.ArgumentTypeError('header must be in the format of "key: value"')

    key, value = text.split(':', 1)
    return (key.strip(), value.strip())


def sleep(text):
    """ Parse a --sleep duration into seconds.
    """

    try:
        seconds = duration.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))

    if seconds < 0:
        raise argparse.ArgumentTypeError('duration must be positive')

    return seconds


def count(text):

    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError('invalid count: ' + repr(text))

    if value < 0:
        raise argparse.ArgumentTypeError('count must not be negative')

    return value



def _transport_help():

    lines = ['transports:']
    for name, text in transport.describe():
        first, *rest = text.split('\n')
        lines.append('  %-8s%s' % (name, first))
        for line in rest:
            lines.append('  %-8s%s' % ('', line))

    return '\n'.join(lines)


def _verbosity(prefix=''):

    common = argparse.ArgumentParser(add_help=False)
    group = common.add_mutually_exclusive_group()
    group.add_argument('-v', '--verbose', dest=prefix + 'verbose', action='count', default=0,
                       help='increase logging verbosity')
    group.add_argument('-q', '--quiet', dest=prefix + 'quiet', action='count', default=0,
                       help='decrease logging verbosity')

    return common


def parser():
    """ Build the :class:`argparse.ArgumentParser` for the command line.
    """

    # Verbosity may be given before the URL and after the command. A
    # subcommand parses into a namespace of its own, so its counts are kept
    # under separate names and added up by verbosity().

    common = _verbosity('command_')

    top = Parser(prog='mqcat', parents=[_verbosity()],
                 description='netcat for message buses',
                 epilog=_transport_help(),
                 formatter_class=argparse.RawDescriptionHelpFormatter)

    top.add_argument('-V', '--version', action='version', version=version.describe(),
                     help='print version and build info')

    # An optional URL ahead of the subcommands would swallow the command
    # name, so it is required here; main() handles a bare invocation.
    top.add_argument('url', metavar='URL',
                     help='transport name or server url address')
    top.set_defaults(command=None)

    commands = top.add_subparsers(dest='alias', metavar='COMMAND', parser_class=Parser)

    publish = commands.add_parser('publish', aliases=['pub'], parents=[common],
                                  help='publish a message to a channel')
    publish.add_argument('topic', help='channel name')
    publish.add_argument('data', help='data to publish')
    publish.add_argument('-H', '--header', type=header, action='append', default=[],
                         help='add header to the message')
    publish.add_argument('--count', type=count, default=1,
                         help='publish multiple messages')
    publish.add_argument('--sleep', type=sleep, default=0,
                         help='sleep between messages (e.g. 500ms, 1s)')
    publish.set_defaults(command='publish')

    subscribe = commands.add_parser('subscribe', aliases=['sub'], parents=[common],
                                    help='subscribe to a channel')
    subscribe.add_argument('topic', help='channel name')
    subscribe.add_argument('--translate', metavar='CMD',
                           help='decode the message by passing it through a given command')
    subscribe.add_argument('--raw', action='store_true',
                           help='write payloads unmodified, even if not valid UTF-8')
    subscribe.set_defaults(command='subscribe')

    request = commands.add_parser('request', aliases=['req'], parents=[common],
                                  help='request a message from a channel')
    request.add_argument('topic', help='channel name')
    request.add_argument('data', help='request data')
    request.add_argument('-H', '--header', type=header, action='append', default=[],
                         help='add header to the message')
    request.add_argument('--count', type=count, default=1,
                         help='send multiple requests')
    request.add_argument('--translate', metavar='CMD',
                         help='decode the message by passing it through a given command')
    request.add_argument('--raw', action='store_true',
                         help='write payloads unmodified, even if not valid UTF-8')
    request.set_defaults(command='request')

    info = commands.add_parser('info', parents=[common],
                               help='print connection and server details')
    info.set_defaults(command='info')

    return top



def verbosity(arguments):
    """ Return the total (verbose, quiet) counts from parsed *arguments*,
        adding up flags given before the URL and after the command.
    """

    verbose = arguments.verbose + getattr(arguments, 'command_verbose', 0)
    quiet = arguments.quiet + getattr(arguments, 'command_quiet', 0)

    return (verbose, quiet)


def setup_logging(verbose=0, quiet=0):
    """ Configure the root logger from the -v/-q counts. The default is
        INFO; each -v or -q moves one step. The MQCAT_LOG environment
        variable, a level name, takes precedence.
    """

    offset = verbose - quiet

    if offset <= -2:
        level = logging.ERROR
    elif offset == -1:
        level = logging.WARNING
    elif offset == 0:
        level = logging.INFO
    else:
        level = logging.DEBUG

    override = os.environ.get('MQCAT_LOG')
    if override:
        named = logging.getLevelName(override.upper())
        if isinstance(named, int):
            level = named

    logging.basicConfig(format=log_format, stream=sys.stderr)
    logging.getLogger().setLevel(level)

    if offset >= 2:
        library_level = logging.DEBUG
    else:
        library_level = max(level, logging.WARNING)

    for name in libraries:
        logging.getLogger(name).setLevel(library_level)

    return level



def main(argv=None):
    """ Entry point for the ``mqcat`` executable. Returns the exit status.
    """

    arguments_parser = parser()

    leading = argparse.ArgumentParser(add_help=False)
    leading.add_argument('-v', '--verbose', action='count')
    leading.add_argument('-q', '--quiet', action='count')
    leading.add_argument('url', nargs='?')
    known, remaining = leading.parse_known_args(argv)

    if known.url is None and not remaining:
        arguments_parser.print_help()
        return 0

    arguments = arguments_parser.parse_args(argv)

    verbose, quiet = verbosity(arguments)

    if verbose and quiet:
        arguments_parser.error('argument -q/--quiet: not allowed with argument -v/--verbose')

    setup_logging(verbose, quiet)

    if arguments.command is None:
        arguments_parser.print_help()
        return 0

    name, address = url.parse(arguments.url)

    if name not in transport.backends:
        available = ', '.join("'%s'" % (other) for other in transport.names())
        arguments_parser.error("invalid transport: '%s', available transports are: %s" % (name, available))

    try:
        backend = transport.backend(name)
    except ImportError as e:
        log.error('the %s transport is unavailable: %s', name, e)
        return 1

    log.debug('using %s backend, address %s', name, repr(address or backend.default_address))

    trap = cancel.Trap()
    trap.install()

    try:
        interrupted = trap.execute(dispatch.run(backend, address, arguments))
    except (transport.TransportError, TranslateError) as e:
        log.error('%s', e)
        return 1
    except BrokenPipeError:
        # The reader went away, as with `mqcat ... | head`.
        _discard_stdout()
        return 1

    if interrupted:
        # Threads blocked in a client library would hold up a normal
        # interpreter exit.
        sys.stdout.flush()
        sys.stderr.flush()
        trap.exit(0)

    return 0



def _discard_stdout():
    """ Point standard output at the null device, so that flushing it at
        interpreter exit does not fail a second time.
    """

    try:
        descriptor = sys.stdout.fileno()
    except (AttributeError, ValueError, OSError):
        return

    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, descriptor)
    os.close(devnull)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
