
def format_table(rows):
    """ Format a sequence of (key, value) pairs as right-aligned ``key: value``
        lines. A pair where both key and value are empty produces a blank
        line, which is handy to group related rows.
    """

    width = max((len(key) for key, value in rows), default=0) + 2

    lines = list()
    for key, value in rows:
        if key == '' and value == '':
            lines.append('\n')
            continue
        lines.append('%*s: %s\n' % (width, key, value))

    return ''.join(lines)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
