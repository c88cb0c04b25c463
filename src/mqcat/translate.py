""" Pass a payload through an external command and collect its output. This
    is how a subscriber turns, for example, a protobuf or CBOR payload into
    something readable before it is printed.
"""

import asyncio
import logging
import shlex

log = logging.getLogger(__name__)


class TranslateError(Exception):
    """ The translate command could not be parsed, started, or it exited
        with a non-zero status.
    """


async def translate(payload, command):
    """ Run *command*, a shell-style command line, with *payload* on its
        standard input, and return whatever it writes to standard output.
        Standard error is logged line by line as warnings; it is never part
        of the result.
    """

    try:
        arguments = shlex.split(command)
    except ValueError as e:
        raise TranslateError('invalid translate command: ' + str(e)) from e

    if not arguments:
        raise TranslateError('invalid translate command: empty command line')

    pipe = asyncio.subprocess.PIPE

    try:
        process = await asyncio.create_subprocess_exec(
            *arguments, stdin=pipe, stdout=pipe, stderr=pipe)
    except OSError as e:
        raise TranslateError('failed to start %s: %s' % (repr(arguments[0]), e)) from e

    try:
        stdout, stderr = await process.communicate(payload)
    finally:
        # Only reached with a live process if communicate() was cancelled
        # or failed; don't leave the child behind.
        if process.returncode is None:
            process.kill()
            await process.wait()

    for line in stderr.decode(errors='replace').splitlines():
        log.warning('translate stderr: %s', line)

    if process.returncode != 0:
        raise TranslateError('translate failed with exit code %d' % (process.returncode))

    return stdout


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
