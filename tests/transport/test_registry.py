import pytest

import mqcat
from mqcat.transport import MessageQueue, TransportConnectionError


def test_names():

    assert mqcat.transport.names() == ['cfj', 'cfp', 'nats', 'zenoh', 'zmq', 'amqp']

    for name, text in mqcat.transport.describe():
        assert 'default:' in text


def test_unknown_backend():

    with pytest.raises(KeyError):
        mqcat.transport.backend('bogus')


def test_backend_classes():

    for name in ('nats', 'zmq'):
        backend = mqcat.transport.backend(name)
        assert issubclass(backend, MessageQueue)
        assert backend.default_address is not None


async def test_zmq_endpoints():
    """ One base port, the next two for the subscribe and request sides of
        the forwarder.
    """

    ZeroMQ = mqcat.transport.backend('zmq')
    mq = await ZeroMQ.connect('tcp://broker:6000')

    try:
        assert mq.publish_endpoint == 'tcp://broker:6000'
        assert mq.subscribe_endpoint == 'tcp://broker:6001'
        assert mq.request_endpoint == 'tcp://broker:6002'

        info = await mq.info()
        assert 'Request Endpoint: tcp://broker:6002' in info
    finally:
        await mq.close()


async def test_zmq_bad_address():

    ZeroMQ = mqcat.transport.backend('zmq')

    with pytest.raises(TransportConnectionError):
        await ZeroMQ.connect('udp://broker:6000')

    with pytest.raises(TransportConnectionError):
        await ZeroMQ.connect('tcp://broker')

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
