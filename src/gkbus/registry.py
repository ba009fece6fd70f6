""" The lookup table from bus addresses to registered handlers.

    A :class:`Handler` is identified by its :class:`Address`: the bus
    selector, the object path, the interface, and the member name. Handlers
    are registered while a daemon sets up, looked up by exact address match
    while it runs, and released all at once when it shuts down.
"""

import collections
import enum
import logging
import threading

from . import errors
from . import introspect
from .types import ArgType

log = logging.getLogger(__name__)


class BusSelector(enum.Enum):
    SYSTEM = 'system'
    SESSION = 'session'


class EventKind(enum.Enum):
    """ How an inbound message is dispatched to a handler: a METHOD gets
        exactly one reply, a SIGNAL never gets one, and an ASYNC_METHOD
        gets exactly one reply that may be completed after its callback
        returns.
    """

    METHOD = 'method'
    SIGNAL = 'signal'
    ASYNC_METHOD = 'async_method'


IN = 'in'
OUT = 'out'


Address = collections.namedtuple('Address', ('bus', 'path', 'interface', 'member'))

Argument = collections.namedtuple('Argument', ('type', 'name', 'direction', 'comment', 'deferred'),
                                  defaults=(IN, '', False))
Argument.__doc__ = """ One declared argument of a handler: its
    :class:`gkbus.types.ArgType`, a *name* and *comment* for the
    introspection document, and a *direction*, either :data:`IN` or
    :data:`OUT`. An outbound argument of an asynchronous method may be
    *deferred*, meaning it is appended by the completion hook rather than
    returned by the callback.
    """


def arg_in(type, name, comment=''):
    return Argument(type, name, IN, comment)


def arg_out(type, name, comment='', deferred=False):
    return Argument(type, name, OUT, comment, deferred)


Declaration = collections.namedtuple('Declaration', ('address', 'arguments', 'introspectable'))
Declaration.__doc__ = """ A signal this process emits. Declarations only
    appear in the introspection document; they are never dispatched.
    """


class Handler:
    """ A registered mapping from an :class:`Address` to a *callback*. The
        *arguments* are the ordered :class:`Argument` declarations: the
        inbound arguments are extracted in exactly this order and passed
        positionally to the callback, and the non-deferred outbound
        arguments describe what the callback returns.

        A callback with no outbound arguments returns None; one with a
        single outbound argument returns that value; one with several
        returns a sequence.

        Asynchronous methods also have a *completion* hook, which receives
        the :class:`gkbus.completer.AsyncReplyCompleter` for the reply once
        the callback's result is appended.

        Handlers are immutable once created.
    """

    __slots__ = ('_address', '_arguments', '_kind', '_callback',
                 '_introspectable', '_completion')

    def __init__(self, address, arguments, kind, callback, introspectable=True, completion=None):

        arguments = tuple(arguments)
        kind = EventKind(kind)

        for argument in arguments:
            if not isinstance(argument.type, ArgType):
                raise TypeError('argument type must be an ArgType: ' + repr(argument.type))
            if argument.direction != IN and argument.direction != OUT:
                raise ValueError('invalid argument direction: ' + repr(argument.direction))
            if argument.deferred and argument.direction != OUT:
                raise ValueError('only outbound arguments can be deferred')
            if argument.deferred and kind != EventKind.ASYNC_METHOD:
                raise ValueError('deferred arguments require an asynchronous method')
            if argument.direction == OUT and kind == EventKind.SIGNAL:
                raise ValueError('a signal handler cannot declare outbound arguments')

        if callback is None or not callable(callback):
            raise TypeError('handler callback must be callable')

        if kind == EventKind.ASYNC_METHOD:
            if completion is None or not callable(completion):
                raise TypeError('an asynchronous method requires a callable completion hook')
        elif completion is not None:
            raise ValueError('only asynchronous methods take a completion hook')

        object.__setattr__(self, '_address', Address(*address))
        object.__setattr__(self, '_arguments', arguments)
        object.__setattr__(self, '_kind', kind)
        object.__setattr__(self, '_callback', callback)
        object.__setattr__(self, '_introspectable', bool(introspectable))
        object.__setattr__(self, '_completion', completion)


    def __setattr__(self, name, value):
        raise AttributeError('Handler instances are immutable')


    def __repr__(self):
        return 'Handler(%s, %s, %s)' % (repr(self.address), self.kind.name, self.signature())


    address = property(lambda self: self._address)
    arguments = property(lambda self: self._arguments)
    kind = property(lambda self: self._kind)
    callback = property(lambda self: self._callback)
    introspectable = property(lambda self: self._introspectable)
    completion = property(lambda self: self._completion)


    def argument_shape(self):
        """ Return the ordered :class:`gkbus.types.ArgType` of every inbound
            argument.
        """

        return tuple(argument.type for argument in self._arguments if argument.direction == IN)


    def result_shape(self):
        """ Return the ordered :class:`gkbus.types.ArgType` of every
            outbound argument returned by the callback.
        """

        shape = list()
        for argument in self._arguments:
            if argument.direction == OUT and not argument.deferred:
                shape.append(argument.type)

        return tuple(shape)


    def deferred_shape(self):
        """ Return the ordered :class:`gkbus.types.ArgType` of every
            outbound argument appended by the completion hook.
        """

        return tuple(argument.type for argument in self._arguments if argument.deferred)


    def signature(self):
        signature = ''
        for type in self.argument_shape():
            signature += type.signature

        return signature


    def invoke(self, arguments):
        """ Invoke the callback with the extracted *arguments*, and return
            the result as a list with one entry per :func:`result_shape`
            element.
        """

        result = self._callback(*arguments)
        shape = self.result_shape()

        if len(shape) == 0:
            if result is not None:
                log.debug('%s: discarding return value of a handler with no results', self._address.member)
            return []

        if len(shape) == 1:
            return [result]

        result = list(result)
        if len(result) != len(shape):
            raise ValueError('%s returned %d values, expected %d' % (self._address.member, len(result), len(shape)))

        return result


    def complete(self, completer):
        self._completion(completer)


# end of class Handler



class CallRegistry:
    """ Handlers keyed by :class:`Address`. Registration is serialized by a
        lock; lookups during dispatch are not.
    """

    def __init__(self):

        self._handlers = dict()
        self._declared = dict()
        self._lock = threading.Lock()


    def __len__(self):
        return len(self._handlers)


    def __contains__(self, address):
        return Address(*address) in self._handlers


    def register(self, address, arguments, kind, callback, introspectable=True, completion=None):
        """ Create and register a :class:`Handler` for *address*. Raise
            :class:`gkbus.errors.DuplicateRegistration` if a handler is
            already registered there; the existing handler is untouched.
        """

        handler = Handler(address, arguments, kind, callback, introspectable, completion)
        address = handler.address

        self._lock.acquire()

        try:
            if address in self._handlers:
                raise errors.DuplicateRegistration('a handler is already registered for ' + _describe(address))

            self._handlers[address] = handler
        finally:
            self._lock.release()

        log.debug('registered %s %s', handler.kind.name, _describe(address))
        return handler


    def unregister(self, address):
        """ Remove and return the handler registered for *address*.
        """

        address = Address(*address)

        self._lock.acquire()
        try:
            handler = self._handlers.pop(address)
        except KeyError:
            raise errors.HandlerNotFound('no handler registered for ' + _describe(address)) from None
        finally:
            self._lock.release()

        log.debug('unregistered %s', _describe(address))
        return handler


    def unregister_all(self):

        self._lock.acquire()
        count = len(self._handlers)
        self._handlers.clear()
        self._declared.clear()
        self._lock.release()

        log.debug('released %d handler(s)', count)


    def declare_signal(self, address, arguments=(), introspectable=True):
        """ Record a signal this process emits, so that it appears in the
            introspection document for its object.
        """

        declaration = Declaration(Address(*address), tuple(arguments), bool(introspectable))

        self._lock.acquire()

        try:
            if declaration.address in self._declared:
                raise errors.DuplicateRegistration('signal already declared: ' + _describe(declaration.address))

            self._declared[declaration.address] = declaration
        finally:
            self._lock.release()

        return declaration


    def find(self, address):
        """ Return the handler registered for *address*, or None.
        """

        return self._handlers.get(Address(*address))


    def lookup(self, address):
        """ Return the handler registered for *address*; raise
            :class:`gkbus.errors.HandlerNotFound` if there is none.
        """

        handler = self.find(address)

        if handler is None:
            raise errors.HandlerNotFound('no handler registered for ' + _describe(Address(*address)))

        return handler


    def handlers(self, bus=None, path=None):
        """ Return the registered handlers, optionally restricted to one bus
            and one object path, sorted by address.
        """

        self._lock.acquire()
        handlers = list(self._handlers.values())
        self._lock.release()

        return _select(handlers, bus, path)


    def declared(self, bus=None, path=None):

        self._lock.acquire()
        declared = list(self._declared.values())
        self._lock.release()

        return _select(declared, bus, path)


    def objects(self, bus):
        """ Return the sorted object paths with at least one handler or
            declared signal on *bus*.
        """

        paths = set()

        for entry in self.handlers(bus) + self.declared(bus):
            paths.add(entry.address.path)

        return sorted(paths)


    def build_introspection(self, bus, path):
        return introspect.build(self, bus, path)


# end of class CallRegistry



def _select(entries, bus, path):

    selected = list()

    for entry in entries:
        address = entry.address
        if bus is not None and address.bus != bus:
            continue
        if path is not None and address.path != path:
            continue
        selected.append(entry)

    selected.sort(key=_sort_key)
    return selected


def _sort_key(entry):
    address = entry.address
    return (address.bus.value, address.path, address.interface, address.member)


def _describe(address):
    bus = address.bus
    bus = getattr(bus, 'value', bus)
    return '%s:%s %s.%s' % (bus, address.path, address.interface, address.member)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
