""" mqcat: netcat for message buses. Publish, subscribe and send requests
    over NATS, Zenoh, Centrifugo, ZeroMQ or RabbitMQ from the command line.
"""

# Utility components.

from . import duration
from . import table
from . import url

# Submodules used by multiple other components.

from . import frame
from . import transport
from . import version

# Primary public-facing interfaces.

from . import cancel
from . import dispatch
from . import translate

from .frame import Frame
from .cli import main

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
