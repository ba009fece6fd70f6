""" Deferred completion of asynchronous method replies.
"""

import logging
import threading

from . import codec
from . import errors
from .types import ArgType

log = logging.getLogger(__name__)


class AsyncReplyCompleter:
    """ The open reply of one asynchronous method call, handed to the
        completion hook of its handler once the callback's own result has
        been appended. The hook, or whatever it passes the completer to, may
        append further fields and must eventually call :func:`commit` or
        :func:`abandon`, exactly once. Other messages keep being dispatched
        in the meantime; nothing but the completer touches the reply.

        The *finish* callable sends the reply, falling back to an error
        reply if that fails; the *fail* callable discards the reply and
        sends an error reply with the given exception or text instead.
    """

    def __init__(self, reply, handler, finish, fail):

        self.reply = reply
        self.handler = handler
        self.serial = reply.call.serial

        self.committed = False
        self.abandoned = False
        self.failure = None

        self._finish = finish
        self._fail = fail
        self._lock = threading.Lock()


    def __repr__(self):
        return 'AsyncReplyCompleter(#%s, committed=%s, abandoned=%s)' % (self.serial, self.committed, self.abandoned)


    @property
    def done(self):
        return self.committed or self.abandoned


    def _check(self):

        if self.committed:
            raise errors.UsageError('reply to #%s was already committed' % (self.serial))

        if self.abandoned:
            raise errors.UsageError('reply to #%s was already abandoned' % (self.serial))


    def _append(self, function, *args):
        """ Run one codec append against the open reply. A failed append
            discards the reply on the spot: the exception still goes back
            to the caller, and the eventual :func:`commit` sends an error
            reply instead.
        """

        self._lock.acquire()

        try:
            self._check()

            if self.failure is not None:
                raise errors.UsageError('reply to #%s was discarded after a failed append: %s' % (self.serial, self.failure))

            try:
                function(self.reply.writer, *args)
            except Exception as e:
                self.failure = e
                self.reply.discard()
                log.warning('reply to #%s discarded, append failed: %s', self.serial, str(e) or type(e).__name__)
                raise
        finally:
            self._lock.release()


    def append(self, type, value):
        """ Append one *value* of the :class:`gkbus.types.ArgType` *type*
            to the open reply.
        """

        self._append(codec.append, type, value)


    def append_deferred(self, *values):
        """ Append one value for each deferred outbound argument declared
            by the handler, in declaration order.
        """

        self._append(codec.append_values, self.handler.deferred_shape(), values)


    def append_boolean(self, value):
        self.append(ArgType.BOOLEAN, value)

    def append_byte(self, value):
        self.append(ArgType.BYTE, value)

    def append_uint16(self, value):
        self.append(ArgType.UINT16, value)

    def append_uint32(self, value):
        self.append(ArgType.UINT32, value)

    def append_uint64(self, value):
        self.append(ArgType.UINT64, value)

    def append_string(self, value):
        self.append(ArgType.STRING, value)

    def append_string_array(self, values):
        self.append(ArgType.STRING_ARRAY, values)

    def append_mkey_id(self, key):
        self.append(ArgType.MKEY_ID, key)

    def append_gkey_id(self, key):
        self.append(ArgType.GKEY_ID, key)

    def append_mkey_id_array(self, keys):
        self.append(ArgType.MKEY_ID_ARRAY, keys)

    def append_gkey_id_array(self, keys):
        self.append(ArgType.GKEY_ID_ARRAY, keys)

    def append_macro(self, macro):
        self.append(ArgType.MACRO, macro)

    def append_macros_bank(self, bank):
        self.append(ArgType.MACROS_BANK, bank)

    def append_devices_map(self, devices):
        self.append(ArgType.DEVICES_MAP, devices)

    def append_lcd_plugins_array(self, plugins):
        self.append(ArgType.LCD_PLUGINS_ARRAY, plugins)


    def commit(self):
        """ Send the reply. If the reply cannot be sent, an error reply is
            sent in its place; either way the caller gets exactly one. After
            a failed append the reply is already gone, and the error reply
            carries the reason of that failure.
        """

        self._lock.acquire()

        try:
            self._check()
            failure = self.failure

            if failure is None:
                self.committed = True
            else:
                self.abandoned = True
        finally:
            self._lock.release()

        if failure is None:
            self._finish(self.reply)
        else:
            self._fail(self.reply, failure)


    def abandon(self, reason):
        """ Discard the open reply, and send an error reply carrying
            *reason*, an exception or a string, instead.
        """

        self._lock.acquire()

        try:
            self._check()
            self.abandoned = True
        finally:
            self._lock.release()

        log.warning('abandoning reply to #%s: %s', self.serial, reason)
        self._fail(self.reply, reason)


# end of class AsyncReplyCompleter


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
