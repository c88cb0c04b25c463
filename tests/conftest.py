import pytest

from mqcat.transport import MessageQueue


class FakeMQ(MessageQueue):
    """ In-memory stand-in for a backend. Calls are recorded in order;
        subscriptions replay whatever was queued in *incoming*, and requests
        answer from *replies*, one entry per call. An entry that is an
        exception instance is raised instead.
    """

    instances = list()

    # Scripted traffic for instances created by connect().
    incoming = ()
    replies = ()

    def __init__(self, address=None):
        self.address = address
        self.calls = list()
        self.incoming = list(type(self).incoming)
        self.replies = list(type(self).replies)
        self.failures = dict()
        self.closed = False

    @classmethod
    async def connect(cls, address=None):
        instance = cls(address)
        cls.instances.append(instance)
        return instance

    async def info(self):
        self.calls.append(('info',))
        return 'Server: fake\n'

    async def publish(self, topic, headers, payload):
        self.calls.append(('publish', topic, list(headers), payload))
        failure = self.failures.get(len(self.calls))
        if failure is not None:
            raise failure

    async def subscribe(self, topic):
        self.calls.append(('subscribe', topic))
        for item in self.incoming:
            yield item

    async def request(self, topic, headers, payload):
        self.calls.append(('request', topic, list(headers), payload))
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def close(self):
        self.closed = True


@pytest.fixture
def fake():
    FakeMQ.instances = list()
    yield FakeMQ
    FakeMQ.instances = list()


class Output:
    """ Binary sink with a flush() method, like ``sys.stdout.buffer``.
    """

    def __init__(self):
        self.data = b''
        self.flushes = 0

    def write(self, data):
        self.data += data

    def flush(self):
        self.flushes += 1


@pytest.fixture
def output():
    return Output()

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
