import asyncio
import time
import signal
import pytest

import mqcat


class Trap(mqcat.cancel.Trap):
    """ Record forced exits instead of terminating the test process.
    """

    def __init__(self):
        mqcat.cancel.Trap.__init__(self)
        self.exits = 0
        self.statuses = list()

    def exit(self, status=None):
        self.exits += 1
        self.statuses.append(status)



async def test_completes():

    async def command():
        return 'done'

    trap = Trap()
    interrupted = await trap.run(command())

    assert interrupted == False
    assert trap.closed == True
    assert trap.exits == 0


async def test_exception_propagates():

    async def command():
        raise ValueError('broken')

    trap = Trap()

    with pytest.raises(ValueError):
        await trap.run(command())


async def test_interrupt_abandons_command():
    """ The command never cooperates; the first interrupt still ends the
        run, and the abandoned command is cancelled.
    """

    started = asyncio.Event()
    cancelled = list()

    async def command():
        started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    trap = Trap()

    async def interrupt():
        await started.wait()
        trap.handler(signal.SIGINT, None)

    asyncio.ensure_future(interrupt())
    interrupted = await asyncio.wait_for(trap.run(command()), 5)

    assert interrupted == True
    assert trap.exits == 0

    for _ in range(3):
        await asyncio.sleep(0)
    assert cancelled == [True]


def test_second_interrupt_forces_exit():

    trap = Trap()
    trap.loop = asyncio.new_event_loop()

    try:
        trap.handler()
        assert trap.exits == 0
        assert trap.pending == True

        trap.handler()
        assert trap.exits == 1
    finally:
        trap.loop.close()


def test_pending_interrupt_forces_exit():
    """ Outside the repeat window, an interrupt that arrives before the
        previous one was delivered still forces an exit.
    """

    trap = Trap()
    trap.window = 0
    trap.loop = asyncio.new_event_loop()

    try:
        trap.handler()
        trap.handler()
        assert trap.exits == 1
    finally:
        trap.loop.close()


def test_interrupt_without_loop():

    trap = Trap()
    trap.handler()
    assert trap.exits == 1


async def test_interrupt_after_close():

    async def command():
        pass

    trap = Trap()
    await trap.run(command())

    trap.handler()
    assert trap.exits == 1


def test_closed_loop():

    trap = Trap()
    trap.loop = asyncio.new_event_loop()
    trap.loop.close()

    trap.handler()
    assert trap.exits == 1


def test_install():

    before = signal.getsignal(signal.SIGINT)

    trap = Trap()
    trap.install()

    try:
        assert signal.getsignal(signal.SIGINT) == trap.handler
    finally:
        trap.uninstall()

    assert signal.getsignal(signal.SIGINT) == before



def test_execute_completes():

    async def command():
        await asyncio.sleep(0)

    trap = Trap()
    assert trap.execute(command()) == False
    assert trap.exits == 0


def test_execute_propagates():

    async def command():
        raise ValueError('broken')

    trap = Trap()

    with pytest.raises(ValueError):
        trap.execute(command())


def test_execute_does_not_wait_for_threads():
    """ A worker thread stuck in a blocking call must not delay the return
        from an interrupted command.
    """

    async def command():
        asyncio.get_running_loop().call_later(0.1, trap.handler)
        await asyncio.to_thread(time.sleep, 3)

    trap = Trap()

    begin = time.monotonic()
    interrupted = trap.execute(command())
    elapsed = time.monotonic() - begin

    assert interrupted == True
    assert elapsed < 2
    assert trap.exits == 0

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
