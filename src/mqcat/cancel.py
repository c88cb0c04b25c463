""" Interrupt handling for a running command.

    The first Ctrl-C stops the command immediately: the command coroutine
    races against an abort event, and whichever finishes first wins, so a
    command stuck waiting on the network does not need to cooperate. A
    second Ctrl-C within :attr:`Trap.window` seconds, or any Ctrl-C once the
    abort is already underway, terminates the process from within the signal
    handler, bypassing the event loop entirely.
"""

import asyncio
import logging
import os
import signal
import time

log = logging.getLogger(__name__)


class Trap:
    """ Own the SIGINT handler for the duration of one command. All of the
        escalation state lives on the instance; the handler is a bound
        method, so nothing else can reach it.

        :ivar window: Seconds within which a repeated interrupt forces exit.
        :ivar last: Monotonic timestamp of the most recent interrupt.
    """

    window = 10
    exit_status = 1
    grace = 1

    def __init__(self):

        self.last = None
        self.loop = None
        self.abort = None

        # Single-slot channel to the supervising coroutine: 'pending' is a
        # notification that has been sent but not yet consumed, 'closed'
        # means nobody is listening anymore.

        self.pending = False
        self.closed = False

        self.previous = None


    def install(self):
        """ Replace the process SIGINT handler with :func:`handler`. Python
            runs signal handlers in the main thread between bytecodes, so the
            handler still fires while the event loop is busy or blocked.
        """

        self.previous = signal.signal(signal.SIGINT, self.handler)


    def uninstall(self):
        if self.previous is not None:
            signal.signal(signal.SIGINT, self.previous)
            self.previous = None


    def handler(self, signum=None, frame=None):

        now = time.monotonic()
        last = self.last
        self.last = now

        if last is not None and now - last < self.window:
            log.error('Received SIGINT again, aborting...')
            self.exit()
            return

        if self.closed or self.loop is None:
            log.error('Received SIGINT, aborting...')
            self.exit()
            return

        if self.pending:
            log.error('Received SIGINT again, aborting...')
            self.exit()
            return

        try:
            self.loop.call_soon_threadsafe(self._notify)
        except RuntimeError:
            # Event loop already closed.
            log.error('Received SIGINT, aborting...')
            self.exit()
            return

        self.pending = True
        log.error('Received SIGINT, exiting...')


    def exit(self, status=None):
        """ Terminate the process immediately, without unwinding. Tests
            replace this method.
        """

        if status is None:
            status = self.exit_status

        os._exit(status)


    def _notify(self):
        self.pending = False
        self.abort.set()


    async def run(self, command):
        """ Run the *command* coroutine until it completes or an interrupt
            arrives. Returns True if the command was interrupted, False if it
            completed; exceptions raised by the command propagate.
        """

        self.loop = asyncio.get_running_loop()
        self.abort = asyncio.Event()

        task = asyncio.ensure_future(command)
        waiter = asyncio.ensure_future(self.abort.wait())

        try:
            done, pending = await asyncio.wait(
                (task, waiter), return_when=asyncio.FIRST_COMPLETED)
        finally:
            self.closed = True
            for future in (task, waiter):
                if not future.done():
                    future.cancel()

        if task in done:
            # Propagate any exception raised by the command.
            task.result()
            return False

        return True


    def execute(self, command):
        """ Run the *command* coroutine to completion on a new event loop,
            the synchronous counterpart of :func:`run`. An interrupted
            command gets :attr:`grace` seconds to unwind; worker threads
            still blocked inside a client library are not waited for.
            Returns True if the command was interrupted.
        """

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        interrupted = False

        try:
            interrupted = loop.run_until_complete(self.run(command))
        finally:
            try:
                if interrupted:
                    _unwind(loop, self.grace)
                else:
                    _unwind(loop)
                    loop.run_until_complete(loop.shutdown_asyncgens())
                    loop.run_until_complete(loop.shutdown_default_executor())
            finally:
                asyncio.set_event_loop(None)
                loop.close()

        return interrupted



def _unwind(loop, timeout=None):
    """ Cancel every task left on *loop* and wait up to *timeout* seconds
        for them to finish.
    """

    tasks = asyncio.all_tasks(loop)
    if not tasks:
        return

    for task in tasks:
        task.cancel()

    loop.run_until_complete(asyncio.wait(tasks, timeout=timeout))

    for task in tasks:
        if task.done() and not task.cancelled() and task.exception() is not None:
            log.debug('task failed during shutdown: %r', task.exception())


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
