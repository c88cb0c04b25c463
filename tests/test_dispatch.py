import argparse
import asyncio
import pytest

import mqcat
from mqcat import Frame
from mqcat.transport import PublishError, RequestError, SubscriptionError


async def test_publish_count(fake, monkeypatch):
    """ Sleeps happen between messages only, never before the first or
        after the last.
    """

    slept = list()

    async def sleep(seconds):
        slept.append(seconds)

    monkeypatch.setattr(asyncio, 'sleep', sleep)

    mq = await fake.connect()
    await mqcat.dispatch.publish(mq, 'a.b', [('k', 'v')], b'data', count=3, sleep=0.5)

    assert mq.calls == [('publish', 'a.b', [('k', 'v')], b'data')] * 3
    assert slept == [0.5, 0.5]


async def test_publish_zero_count(fake):

    mq = await fake.connect()
    await mqcat.dispatch.publish(mq, 'a.b', [], b'data', count=0)

    assert mq.calls == []


async def test_publish_stops_on_failure(fake):

    mq = await fake.connect()
    mq.failures[2] = PublishError('no listeners')

    with pytest.raises(PublishError):
        await mqcat.dispatch.publish(mq, 'a.b', [], b'data', count=5)

    assert len(mq.calls) == 2


async def test_subscribe_renders_in_order(fake, output):

    mq = await fake.connect()
    mq.incoming = [
        Frame('a.one', payload=b'first'),
        Frame('', payload=b'second\n'),
    ]

    await mqcat.dispatch.subscribe(mq, 'a.*', output=output)

    expected = b'[#1] Received on "a.one" (5 bytes)\nfirst\n\n\n' + \
               b'[#2] Received on "a.*" (7 bytes)\nsecond\n\n\n'

    assert output.data == expected


async def test_subscribe_terminal_error(fake, output):

    mq = await fake.connect()
    mq.incoming = [
        Frame('t', payload=b'x'),
        SubscriptionError('slow consumer'),
        Frame('t', payload=b'never seen'),
    ]

    with pytest.raises(SubscriptionError):
        await mqcat.dispatch.subscribe(mq, 't', output=output)

    assert output.data.count(b'Received on') == 1
    assert b'never seen' not in output.data


async def test_request_count(fake, output):

    mq = await fake.connect()
    mq.replies = [Frame('', payload=b'one'), Frame('reply.t', payload=b'two')]

    await mqcat.dispatch.request(mq, 'svc', [], b'ping', count=2, output=output)

    assert mq.calls == [('request', 'svc', [], b'ping')] * 2
    assert b'[#1] Received on "svc" (3 bytes)\none\n' in output.data
    assert b'[#2] Received on "reply.t" (3 bytes)\ntwo\n' in output.data


async def test_request_failure(fake, output):

    mq = await fake.connect()
    mq.replies = [RequestError('no responders'), Frame('', payload=b'unused')]

    with pytest.raises(RequestError):
        await mqcat.dispatch.request(mq, 'svc', [], b'ping', count=2, output=output)

    assert len(mq.calls) == 1
    assert output.data == b''


async def test_render_headers(output):

    frame = Frame('t', payload=b'body\r')
    frame.add_header('b', '2')
    frame.add_header('a', '1')
    frame.add_header('b', '3')

    await mqcat.dispatch.render(7, frame, output=output)

    assert output.data == b'[#7] Received on "t" (5 bytes)\na: 1\nb: 2\nb: 3\n\nbody\r\n\n'
    assert output.flushes == 1


async def test_render_empty_payload(output):

    await mqcat.dispatch.render(1, Frame('t'), output=output)
    assert output.data == b'[#1] Received on "t" (0 bytes)\n\n\n\n'


async def test_render_invalid_utf8(output):

    frame = Frame('t', payload=b'ok\xff')

    await mqcat.dispatch.render(1, frame, output=output)
    assert output.data.endswith('ok�\n\n\n'.encode())


async def test_render_raw(output):

    frame = Frame('t', payload=b'ok\xff')

    await mqcat.dispatch.render(1, frame, raw=True, output=output)
    assert output.data.endswith(b'ok\xff\n\n\n')


async def test_render_translate(output):

    frame = Frame('t', payload=b'abc')

    await mqcat.dispatch.render(1, frame, "sh -c 'tr a-z A-Z'", output=output)

    # The summary reports the size of the untranslated payload.
    assert output.data == b'[#1] Received on "t" (3 bytes)\nABC\n\n\n'


def arguments(**kwargs):
    defaults = dict(header=[], count=1, sleep=0, translate=None, raw=False)
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


async def test_run_closes(fake, output):

    await mqcat.dispatch.run(fake, 'fake://here', arguments(command='info'), output)

    mq = fake.instances[0]
    assert mq.address == 'fake://here'
    assert mq.calls == [('info',)]
    assert mq.closed
    assert output.data == b'Server: fake\n'


async def test_run_closes_on_failure(fake, output, monkeypatch):

    async def failing(self, topic, headers, payload):
        raise PublishError('nope')

    monkeypatch.setattr(fake, 'publish', failing)

    with pytest.raises(PublishError):
        await mqcat.dispatch.run(fake, '', arguments(command='publish', topic='t', data='x'), output)

    mq = fake.instances[0]
    assert mq.address is None
    assert mq.closed


async def test_run_publish_encodes(fake, output):

    args = arguments(command='publish', topic='t', data='héllo', header=[('a', 'b')])
    await mqcat.dispatch.run(fake, None, args, output)

    assert fake.instances[0].calls == [('publish', 't', [('a', 'b')], 'héllo'.encode())]


def test_format_elapsed():

    assert mqcat.dispatch.format_elapsed(2.5) == '2.500s'
    assert mqcat.dispatch.format_elapsed(0.0125) == '12.500ms'
    assert mqcat.dispatch.format_elapsed(0.0000025) == '2.500µs'

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
