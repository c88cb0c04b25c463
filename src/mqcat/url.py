""" Split a transport URL into the backend name and the address that is
    handed to that backend.

    A ``+`` separates a backend prefix from an address in a foreign scheme,
    and is consumed::

        zenoh+tcp/localhost:7447  ->  ('zenoh', 'tcp/localhost:7447')

    A ``/`` or ``:`` is part of the backend's own URL form, so the whole
    string is kept as the address::

        nats://localhost:4222     ->  ('nats', 'nats://localhost:4222')

    A string with none of these is a bare backend name with no address.
"""

_separators = ('+', '/', ':')


def parse(url):
    """ Return a (backend, address) tuple for the supplied *url*. This
        never raises; anything unexpected is treated as a bare backend name.
    """

    try:
        position = min(url.index(sep) for sep in _separators if sep in url)
    except (ValueError, TypeError):
        return (url, '')

    if url[position] == '+':
        return (url[:position], url[position + 1:])

    return (url[:position], url)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
