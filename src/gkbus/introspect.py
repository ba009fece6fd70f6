""" Build the introspection document for one object from the current state
    of a :class:`gkbus.registry.CallRegistry`. The document follows the
    D-Bus introspection format; it is regenerated on every request.
"""

import xml.etree.ElementTree as ElementTree

from . import registry
from .protocol import fields


DOCTYPE = '<!DOCTYPE node PUBLIC "-//freedesktop//DTD D-BUS Object Introspection 1.0//EN"\n' \
          ' "http://www.freedesktop.org/standards/dbus/1.0/introspect.dtd">\n'


def build(calls, bus, path):
    """ Return the introspection document for the object at *path* on
        *bus*, as a string. The document lists every introspectable handler
        and declared signal of the object grouped by interface, followed by
        one child node for each object below *path*.
    """

    node = ElementTree.Element('node', name=path)

    handlers = [handler for handler in calls.handlers(bus, path) if handler.introspectable]
    declared = [declaration for declaration in calls.declared(bus, path) if declaration.introspectable]

    interfaces = dict()

    for handler in handlers:
        interfaces.setdefault(handler.address.interface, list()).append(handler)

    for declaration in declared:
        interfaces.setdefault(declaration.address.interface, list()).append(declaration)

    explicit = registry.Address(bus, path, fields.INTROSPECTABLE, fields.INTROSPECT)
    if calls.find(explicit) is None:
        _introspectable(node)

    for name in sorted(interfaces):
        interface = ElementTree.SubElement(node, 'interface', name=name)

        # Methods first, then signals, each in address order.
        entries = interfaces[name]
        methods = [entry for entry in entries if _is_method(entry)]
        signals = [entry for entry in entries if not _is_method(entry)]

        for entry in methods:
            _member(interface, 'method', entry)

        for entry in signals:
            _member(interface, 'signal', entry)

    for child in children(calls.objects(bus), path):
        ElementTree.SubElement(node, 'node', name=child)

    ElementTree.indent(node)
    return DOCTYPE + ElementTree.tostring(node, encoding='unicode') + '\n'


def children(paths, path):
    """ Return the sorted names of the direct children of *path*, given all
        the object *paths* known on a bus. Intermediate path components
        count as children even if nothing is registered on them.
    """

    if path == '/':
        prefix = '/'
    else:
        prefix = path.rstrip('/') + '/'

    names = set()

    for candidate in paths:
        if candidate.startswith(prefix) and candidate != prefix:
            name = candidate[len(prefix):].split('/')[0]
            if name:
                names.add(name)

    return sorted(names)


def _is_method(entry):

    kind = getattr(entry, 'kind', None)
    return kind == registry.EventKind.METHOD or kind == registry.EventKind.ASYNC_METHOD


def _introspectable(node):

    interface = ElementTree.SubElement(node, 'interface', name=fields.INTROSPECTABLE)
    method = ElementTree.SubElement(interface, 'method', name=fields.INTROSPECT)
    ElementTree.SubElement(method, 'arg', name='xml_data', type=fields.STRING, direction=registry.OUT)


def _member(interface, tag, entry):

    member = ElementTree.SubElement(interface, tag, name=entry.address.member)

    for argument in entry.arguments:
        attributes = dict()
        attributes['name'] = argument.name
        attributes['type'] = argument.type.signature

        if tag == 'method':
            attributes['direction'] = argument.direction

        ElementTree.SubElement(member, 'arg', attributes)

        if argument.comment:
            member.append(ElementTree.Comment(' ' + argument.comment + ' '))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
