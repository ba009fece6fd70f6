import gkbus
import xml.etree.ElementTree as ElementTree

from gkbus import introspect
from gkbus.protocol import fields
from gkbus.registry import Address, EventKind, arg_in, arg_out
from gkbus.types import ArgType


SYSTEM = gkbus.BusSelector.SYSTEM

root = '/com/glogik/Daemon'
path = root + '/DevicesManager'
interface = 'com.glogik.Daemon.Device1'


def nothing(*args):
    return None


def parse(document):

    assert document.startswith('<!DOCTYPE node PUBLIC')
    body = document[len(introspect.DOCTYPE):]
    return ElementTree.fromstring(body)


def populate(calls):

    calls.register(Address(SYSTEM, path, interface, 'SetDeviceMacro'),
                   (arg_in(ArgType.STRING, 'client_unique_id', 'must be a valid client ID'),
                    arg_in(ArgType.MKEY_ID, 'macro_bankID'),
                    arg_in(ArgType.GKEY_ID, 'macro_keyID'),
                    arg_in(ArgType.MACRO, 'macro_array'),
                    arg_out(ArgType.BOOLEAN, 'did_it_succeed')),
                   EventKind.METHOD, nothing)

    calls.register(Address(SYSTEM, path, interface, 'GetStartedDevices'),
                   (arg_in(ArgType.STRING, 'client_unique_id'),
                    arg_out(ArgType.STRING_ARRAY, 'array_of_strings')),
                   EventKind.METHOD, nothing)

    calls.register(Address(SYSTEM, path, interface, 'Hidden'), (), EventKind.METHOD, nothing, introspectable=False)

    calls.register(Address(SYSTEM, path, 'com.glogik.Daemon.Client1', 'SomethingChanged'),
                   (arg_in(ArgType.STRING, 'client_unique_id'),), EventKind.SIGNAL, nothing)

    calls.declare_signal(Address(SYSTEM, path, interface, 'DevicesStarted'),
                         (arg_out(ArgType.STRING_ARRAY, 'devices_ids'),))

    calls.register(Address(SYSTEM, root + '/ClientsManager', 'com.glogik.Daemon.Client1', 'RegisterClient'),
                   (), EventKind.METHOD, nothing)


def test_document(calls):

    populate(calls)
    node = parse(calls.build_introspection(SYSTEM, path))

    assert node.tag == 'node'
    assert node.get('name') == path

    interfaces = [element.get('name') for element in node.findall('interface')]
    assert interfaces == [fields.INTROSPECTABLE, 'com.glogik.Daemon.Client1', interface]

    devices = node.findall('interface')[2]
    methods = [element.get('name') for element in devices.findall('method')]
    signals = [element.get('name') for element in devices.findall('signal')]

    assert methods == ['GetStartedDevices', 'SetDeviceMacro']
    assert signals == ['DevicesStarted']

    set_macro = devices.find("method[@name='SetDeviceMacro']")
    arguments = [(arg.get('name'), arg.get('type'), arg.get('direction')) for arg in set_macro.findall('arg')]

    assert arguments == [('client_unique_id', 's', 'in'),
                         ('macro_bankID', 'y', 'in'),
                         ('macro_keyID', 'y', 'in'),
                         ('macro_array', 'a(yyq)', 'in'),
                         ('did_it_succeed', 'b', 'out')]

    started = devices.find("signal[@name='DevicesStarted']")
    assert started.find('arg').get('type') == 'as'
    assert started.find('arg').get('direction') is None

    clients = node.findall('interface')[1]
    assert clients.find('signal').get('name') == 'SomethingChanged'


def test_non_introspectable(calls):

    populate(calls)
    document = calls.build_introspection(SYSTEM, path)

    assert 'Hidden' not in document
    assert calls.find(Address(SYSTEM, path, interface, 'Hidden')) is not None


def test_comments(calls):

    populate(calls)
    document = calls.build_introspection(SYSTEM, path)

    assert '<!-- must be a valid client ID -->' in document


def test_children(calls):

    populate(calls)

    node = parse(calls.build_introspection(SYSTEM, '/'))
    assert [child.get('name') for child in node.findall('node')] == ['com']

    node = parse(calls.build_introspection(SYSTEM, root))
    assert [child.get('name') for child in node.findall('node')] == ['ClientsManager', 'DevicesManager']

    # An object with nothing registered still answers Introspect.

    assert node.findall('interface')[0].get('name') == fields.INTROSPECTABLE

    node = parse(calls.build_introspection(SYSTEM, path))
    assert node.findall('node') == []

    assert introspect.children(['/a/b/c', '/a/d', '/ab'], '/a') == ['b', 'd']


def test_regenerated(calls):

    populate(calls)
    before = calls.build_introspection(SYSTEM, path)

    calls.unregister(Address(SYSTEM, path, interface, 'SetDeviceMacro'))
    after = calls.build_introspection(SYSTEM, path)

    assert 'SetDeviceMacro' in before
    assert 'SetDeviceMacro' not in after


def test_explicit_introspect(calls):

    address = Address(SYSTEM, path, fields.INTROSPECTABLE, fields.INTROSPECT)
    calls.register(address, (arg_out(ArgType.STRING, 'xml_data'),), EventKind.METHOD, nothing)

    node = parse(calls.build_introspection(SYSTEM, path))
    interfaces = [element.get('name') for element in node.findall('interface')]

    assert interfaces == [fields.INTROSPECTABLE]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
