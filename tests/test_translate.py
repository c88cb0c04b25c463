import logging
import pytest

from mqcat.translate import translate, TranslateError


async def test_identity():

    result = await translate(b'hello\x00world', 'cat')
    assert result == b'hello\x00world'


async def test_arguments_are_split():

    result = await translate(b'abc', "sh -c 'tr a-z A-Z'")
    assert result == b'ABC'


async def test_stderr_is_logged(caplog):

    caplog.set_level(logging.WARNING, logger='mqcat.translate')

    result = await translate(b'', "sh -c 'echo out; echo first >&2; echo second >&2'")

    assert result == b'out\n'
    messages = [record.getMessage() for record in caplog.records]
    assert messages == ['translate stderr: first', 'translate stderr: second']


async def test_nonzero_exit():

    with pytest.raises(TranslateError) as caught:
        await translate(b'', "sh -c 'exit 3'")

    assert str(caught.value) == 'translate failed with exit code 3'


async def test_unbalanced_quotes():

    with pytest.raises(TranslateError) as caught:
        await translate(b'', "cat 'unterminated")

    assert str(caught.value).startswith('invalid translate command:')


async def test_empty_command():

    with pytest.raises(TranslateError):
        await translate(b'', '   ')


async def test_missing_program():

    with pytest.raises(TranslateError) as caught:
        await translate(b'', 'mqcat-test-no-such-program --flag')

    assert 'mqcat-test-no-such-program' in str(caught.value)

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
