""" Version and build information, as printed by ``mqcat --version``.
"""

import importlib.metadata
import platform

from . import table


distribution = 'mqcat'

try:
    version = importlib.metadata.version(distribution)
except importlib.metadata.PackageNotFoundError:
    # Running from a source tree that was never installed.
    version = '0+unknown'


# The client libraries behind each backend, by distribution name.
libraries = ('nats-py', 'eclipse-zenoh', 'centrifuge-python', 'pyzmq', 'pika')


def library_versions():
    versions = list()

    for name in libraries:
        try:
            found = importlib.metadata.version(name)
        except importlib.metadata.PackageNotFoundError:
            found = 'not installed'
        versions.append((name, found))

    return versions


def describe():
    """ Return the multi-line version report.
    """

    rows = list()
    rows.append(('Version', version))
    rows.append(('Python', '%s %s' % (platform.python_implementation(), platform.python_version())))
    rows.append(('Platform', platform.platform()))
    rows.append(('', ''))
    rows.extend(library_versions())

    return 'mqcat ' + version + '\n\n' + table.format_table(rows)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
