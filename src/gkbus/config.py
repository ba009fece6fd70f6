""" Locate and load the gkbus configuration: the daemon settings stored in
    ``gkbus.json``, and the cache of port numbers used by the ZeroMQ
    transport, both kept in the directory returned by :func:`directory`.
"""

import logging
import os

from . import json

log = logging.getLogger(__name__)


filename = 'gkbus.json'

defaults = {
    'name': 'com.glogik.Daemon',
    'root': '/com/glogik/Daemon',
    'clients_object': 'ClientsManager',
    'clients_interface': 'com.glogik.Daemon.Client1',
    'devices_object': 'DevicesManager',
    'devices_interface': 'com.glogik.Daemon.Device1',
    'buses': ['system'],
    'transport': os.environ.get('GKBUS_TRANSPORT', 'zmq'),
    'zmq_address': '127.0.0.1',
    'zmq_minimum_port': 10079,
    'zmq_maximum_port': 13679,
    'amqp_host': 'localhost',
    'amqp_port': 5672,
    'loglevel': 'INFO',
}

_integers = ('zmq_minimum_port', 'zmq_maximum_port', 'amqp_port')


class Settings:
    """ The daemon settings. To first order an instance acts like a
        dictionary; every key has a default value, and only the keys in
        :data:`defaults` are accepted.
    """

    def __init__(self, values=None):

        self._values = dict(defaults)
        self._values['buses'] = list(defaults['buses'])

        if values is not None:
            self.update(values)


    def __contains__(self, key):
        return key in self._values


    def __getitem__(self, key):
        return self._values[key]


    def __setitem__(self, key, value):
        self.update({key: value})


    def __repr__(self):
        return 'Settings(%s)' % (repr(self._values))


    def get(self, key, default=None):
        return self._values.get(key, default)


    def update(self, values):
        """ Validate and apply the key/value pairs in *values*. Raise
            ValueError for any unknown key or malformed value; in that case
            nothing is applied.
        """

        validated = dict()

        for key, value in values.items():
            if key not in defaults:
                raise ValueError('unknown configuration key: ' + repr(key))

            if key in _integers:
                try:
                    value = int(value)
                except (TypeError, ValueError):
                    raise ValueError('%s must be an integer, not %s' % (key, repr(value)))

            elif key == 'buses':
                if isinstance(value, str):
                    value = [value]
                value = list(value)
                for bus in value:
                    if bus != 'system' and bus != 'session':
                        raise ValueError('unknown bus selector: ' + repr(bus))

            elif key == 'transport':
                if value not in ('zmq', 'rabbitmq', 'loopback'):
                    raise ValueError('unknown transport backend: ' + repr(value))

            validated[key] = value

        self._values.update(validated)


    def load(self, path=None):
        """ Load settings from *path*, by default ``gkbus.json`` in the
            configuration directory. A missing file leaves the defaults in
            place.
        """

        if path is None:
            path = os.path.join(directory(), filename)

        try:
            raw = open(path, 'rb').read()
        except FileNotFoundError:
            log.debug('no configuration file at %s, using defaults', path)
            return self

        try:
            values = json.loads(raw)
        except json.DecodeError as e:
            raise ValueError('cannot parse %s: %s' % (path, str(e)))

        if not isinstance(values, dict):
            raise ValueError('%s does not contain a JSON object' % (path))

        self.update(values)
        return self


    def save(self, path=None):

        if path is None:
            base_directory = directory()
            if not os.path.exists(base_directory):
                os.makedirs(base_directory, mode=0o775)
            path = os.path.join(base_directory, filename)

        contents = json.dumps_pretty(self._values)

        writer = open(path, 'wb')
        writer.write(contents)
        writer.write(b'\n')
        writer.close()


    def path(self, object):
        """ Return the object path of the named *object* below the root.
        """

        return self._values['root'].rstrip('/') + '/' + object


# end of class Settings



def load(path=None):
    return Settings().load(path)



def directory(default=None):
    """ Return the directory location where we should be loading and/or saving
        configuration files. This defaults to ``$HOME/.gkbus``, but can be
        overridden by calling this method with a valid path, or by setting
        the ``GKBUS_HOME`` environment variable. Note that changes to the
        environment variable will be ignored unless it is set prior to the
        first invocation of this method.
    """

    if default is not None:
        default = str(default)
        default = os.path.expandvars(default)

        if not os.path.isabs(default):
            raise ValueError('the default directory must be an absolute path')

        if not os.path.exists(default):
            os.makedirs(default, mode=0o775)

        os.environ['GKBUS_HOME'] = default
        directory.found = default

    found = directory.found

    if found is not None:
        return found

    found = os.environ.get('GKBUS_HOME')

    if found is None:
        try:
            home = os.environ['HOME']
        except KeyError:
            raise RuntimeError('GKBUS_HOME and HOME environment variables not set, cannot determine gkbus configuration directory')

        found = os.path.join(home, '.gkbus')

    directory.found = found
    return found

directory.found = None



def _port_directory(name=None):

    port_directory = os.path.join(directory(), 'daemon', 'port')

    if name is not None:
        port_directory = os.path.join(port_directory, name)

    return port_directory



def load_ports(name):
    """ Return the ROUTER and PUB port numbers, if any, that were last used
        by the daemon with the bus *name*, as a two-item tuple. None is
        returned for a port that cannot be retrieved.
    """

    port_directory = _port_directory(name)
    ports = list()

    for suffix in ('rep', 'pub'):
        cache = os.path.join(port_directory, suffix)

        try:
            port = open(cache, 'r').read()
        except FileNotFoundError:
            port = None
        else:
            port = int(port.strip())

        ports.append(port)

    return tuple(ports)



def save_ports(name, rep=None, pub=None):
    """ Save the ROUTER and/or PUB port numbers used by the daemon with the
        bus *name*, for future restarts.
    """

    port_directory = _port_directory(name)

    if os.path.exists(port_directory):
        if not os.access(port_directory, os.W_OK):
            raise OSError('cannot write to port directory: ' + port_directory)
    else:
        os.makedirs(port_directory, mode=0o775)

    for suffix, port in (('rep', rep), ('pub', pub)):
        if port is None:
            continue

        cache = os.path.join(port_directory, suffix)
        writer = open(cache, 'w')
        writer.write(str(int(port)) + '\n')
        writer.close()



def used_ports():
    """ Return a set of port numbers that were previously in use on this host.
        A previously used port stays "reserved" for its daemon unless/until
        there are no other ports available.
    """

    port_directory = _port_directory()
    ports = set()

    if not os.path.isdir(port_directory):
        return ports

    for root, directories, files in os.walk(port_directory):
        for cache in files:
            port = open(os.path.join(root, cache), 'r').read()
            try:
                ports.add(int(port.strip()))
            except ValueError:
                log.warning('ignoring malformed port cache file: %s', os.path.join(root, cache))

    return ports


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
