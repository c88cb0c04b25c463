"""ZeroMQ transport.

There is no broker in ZeroMQ, so this backend assumes the conventional
arrangement of an XSUB/XPUB forwarder plus a ROUTER service. For a base
address of ``tcp://host:port``:

    publish   -> PUB connects to     tcp://host:port      (forwarder XSUB)
    subscribe -> SUB connects to     tcp://host:port+1    (forwarder XPUB)
    request   -> DEALER connects to  tcp://host:port+2    (ROUTER service)
"""

from .client import ZeroMQ
