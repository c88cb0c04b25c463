""" Parse human readable durations such as ``300ms``, ``1.5h`` or ``2h45m``.

    The accepted syntax is that of Go's ``time.ParseDuration``: an optional
    sign followed by one or more decimal numbers, each with an optional
    fraction and a mandatory unit. Valid units are ``ns``, ``us`` (or ``µs``),
    ``ms``, ``s``, ``m`` and ``h``. A bare ``0`` is also accepted.
"""

import re


_units = {
    'ns': 1,
    'us': 1000,
    'µs': 1000,        # micro sign
    'μs': 1000,        # greek small letter mu
    'ms': 1000000,
    's': 1000000000,
    'm': 60 * 1000000000,
    'h': 3600 * 1000000000,
}

# Longer units first, so that 'ms' is not read as 'm' followed by junk.
_component = re.compile(r'(\d*)(?:\.(\d*))?(ns|us|µs|μs|ms|s|m|h)')


def nanoseconds(text):
    """ Return the duration described by *text* as an integer number of
        nanoseconds. Raises ValueError if *text* is not a valid duration.
    """

    original = text

    sign = 1
    if text[:1] in ('-', '+'):
        if text[0] == '-':
            sign = -1
        text = text[1:]

    if text == '0':
        return 0

    if text == '':
        raise ValueError('time: invalid duration %s' % (repr(original)))

    total = 0
    position = 0

    while position < len(text):
        match = _component.match(text, position)

        if match is None:
            raise ValueError('time: invalid duration %s' % (repr(original)))

        whole, fraction, unit = match.groups()
        fraction = fraction or ''

        if whole == '' and fraction == '':
            # Something like '.s' or a unit with no number at all.
            raise ValueError('time: invalid duration %s' % (repr(original)))

        scale = _units[unit]
        total += int(whole or '0') * scale

        if fraction:
            total += int(fraction) * scale // (10 ** len(fraction))

        position = match.end()

    return sign * total


def parse(text):
    """ Return the duration described by *text* in seconds, as a float.
    """

    return nanoseconds(text) / 1e9


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
