""" Execute a parsed command against a :class:`~mqcat.transport.MessageQueue`.

    The functions here are written against the abstract interface only; the
    backend is whatever class the transport URL selected.
"""

import asyncio
import contextlib
import logging
import sys
import time

from .transport import SubscriptionError
from .translate import translate

log = logging.getLogger(__name__)


async def run(backend, address, arguments, output=None):
    """ Connect with the *backend* class to *address* and run the command
        described by *arguments*, an :class:`argparse.Namespace` from
        :func:`mqcat.cli.parser`. Received messages are written to *output*,
        a binary file object, defaulting to standard output. The connection
        is closed however the command ends.
    """

    if output is None:
        output = sys.stdout.buffer

    command = arguments.command

    mq = await backend.connect(address or None)

    try:
        if command == 'publish':
            await publish(mq, arguments.topic, arguments.header,
                          arguments.data.encode(), arguments.count, arguments.sleep)

        elif command == 'subscribe':
            await subscribe(mq, arguments.topic, arguments.translate,
                            arguments.raw, output)

        elif command == 'request':
            await request(mq, arguments.topic, arguments.header,
                          arguments.data.encode(), arguments.count,
                          arguments.translate, arguments.raw, output)

        elif command == 'info':
            await info(mq, output)

        else:
            raise ValueError('unknown command: ' + repr(command))
    finally:
        await mq.close()



async def publish(mq, topic, headers, payload, count=1, sleep=0):
    """ Publish *payload* to *topic* *count* times, pausing *sleep* seconds
        between messages. The first failure ends the loop.
    """

    for n in range(count):
        if n > 0:
            await asyncio.sleep(sleep)

        await mq.publish(topic, headers, payload)
        log.info('published %d bytes to "%s"', len(payload), topic)



async def subscribe(mq, topic, translate_command=None, raw=False, output=None):
    """ Print every message received on *topic* until the subscription
        ends. A terminal error from the subscription is raised once the
        stream has yielded it.
    """

    index = 0

    async with contextlib.aclosing(mq.subscribe(topic)) as stream:
        async for item in stream:
            if isinstance(item, SubscriptionError):
                raise item

            if not item.topic:
                item.topic = topic

            index += 1
            await render(index, item, translate_command, raw, output)



async def request(mq, topic, headers, payload, count=1, translate_command=None, raw=False, output=None):
    """ Send *count* requests in sequence, printing each reply as it
        arrives.
    """

    for n in range(count):
        log.info('sending request to "%s"', topic)

        begin = time.monotonic()
        frame = await mq.request(topic, headers, payload)
        elapsed = time.monotonic() - begin

        log.info('received with rtt %s', format_elapsed(elapsed))

        if not frame.topic:
            frame.topic = topic

        await render(n + 1, frame, translate_command, raw, output)



async def info(mq, output=None):

    if output is None:
        output = sys.stdout.buffer

    text = await mq.info()
    output.write(text.encode())
    output.flush()



async def render(index, frame, translate_command=None, raw=False, output=None):
    """ Write one received *frame* to *output*: a summary line, the headers,
        then the payload, optionally passed through *translate_command*.
        Unless *raw* is set the payload is decoded as UTF-8 with invalid
        sequences replaced, so arbitrary binary data cannot garble the
        terminal.
    """

    if output is None:
        output = sys.stdout.buffer

    summary = '[#%d] Received on "%s" (%d bytes)\n' % (index, frame.topic, len(frame.payload))
    output.write(summary.encode())

    if frame.headers:
        for key, value in frame.header_pairs():
            output.write(('%s: %s\n' % (key, value)).encode())
        output.write(b'\n')

    data = frame.payload
    if translate_command is not None:
        data = await translate(data, translate_command)

    if not raw:
        data = data.decode('utf-8', errors='replace').encode('utf-8')

    output.write(data)
    if not data.endswith((b'\n', b'\r')):
        output.write(b'\n')

    output.write(b'\n\n')
    output.flush()



def format_elapsed(seconds):
    """ Format a duration for log output with a unit suited to its size.
    """

    if seconds >= 1:
        return '%.3fs' % (seconds)
    if seconds >= 0.001:
        return '%.3fms' % (seconds * 1e3)
    return '%.3fµs' % (seconds * 1e6)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
