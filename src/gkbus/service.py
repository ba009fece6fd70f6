""" The device-control service a keyboard daemon exposes on the bus.

    Two objects are registered below the configured root path. The clients
    manager is where desktop sessions register and report their state; the
    devices manager is where registered clients query and configure the
    keyboards. Every device operation is delegated to a
    :class:`DeviceManager`, which is the seam between the bus and whatever
    actually talks to the hardware; :class:`MemoryDeviceManager` keeps
    everything in memory.

    Every device operation takes the client ID handed out by RegisterClient
    as its first argument. A call from an unknown client is not an error on
    the bus: it is logged, and answered with False or an empty result.
"""

import logging
import threading
import uuid

from .daemon import Daemon
from .registry import arg_in, arg_out
from .types import ArgType, DeviceProperties, GKeyID, LCDPluginProperties, MKeyID

log = logging.getLogger(__name__)


class Device:
    """ The state of one keyboard, as kept by :class:`MemoryDeviceManager`.
    """

    def __init__(self, id, vendor='', product='', name=''):

        self.id = id
        self.vendor = vendor
        self.product = product
        self.name = name

        self.config_file = ''
        self.lcd_plugins = list()

        self.started = False
        self.color = (0xFF, 0xFF, 0xFF)
        self.leds = list()
        self.profile = MKeyID.M0

        self.banks = dict()
        for key in MKeyID:
            self.banks[key] = dict()


    @property
    def status(self):

        if self.started:
            return 'started'

        return 'stopped'


    def __repr__(self):
        return 'Device(%s, started=%s)' % (repr(self.id), self.started)


# end of class Device



class DeviceManager:
    """ The interface the service expects from the layer that drives the
        keyboards. Device identifiers are strings; M-keys and G-keys are
        :class:`gkbus.types.MKeyID` and :class:`gkbus.types.GKeyID`, and a
        macro is a list of :class:`gkbus.types.MacroEvent`.

        Methods that change something return True on success; an unknown
        device is reported by raising KeyError.
    """

    def started_devices(self):
        raise NotImplementedError('DeviceManager subclasses must implement started_devices()')

    def stopped_devices(self):
        raise NotImplementedError('DeviceManager subclasses must implement stopped_devices()')

    def start_device(self, device):
        raise NotImplementedError('DeviceManager subclasses must implement start_device()')

    def stop_device(self, device):
        raise NotImplementedError('DeviceManager subclasses must implement stop_device()')

    def properties(self, device):
        raise NotImplementedError('DeviceManager subclasses must implement properties()')

    def devices_map(self):
        raise NotImplementedError('DeviceManager subclasses must implement devices_map()')

    def lcd_plugins(self, device):
        raise NotImplementedError('DeviceManager subclasses must implement lcd_plugins()')

    def set_backlight_color(self, device, red, green, blue):
        raise NotImplementedError('DeviceManager subclasses must implement set_backlight_color()')

    def get_macro(self, device, mkey, gkey):
        raise NotImplementedError('DeviceManager subclasses must implement get_macro()')

    def set_macro(self, device, mkey, gkey, macro):
        raise NotImplementedError('DeviceManager subclasses must implement set_macro()')

    def reset_macros_bank(self, device, mkey):
        raise NotImplementedError('DeviceManager subclasses must implement reset_macros_bank()')

    def get_macros_bank(self, device, mkey):
        raise NotImplementedError('DeviceManager subclasses must implement get_macros_bank()')

    def set_mkeys_leds(self, device, keys):
        raise NotImplementedError('DeviceManager subclasses must implement set_mkeys_leds()')

    def switch_profile(self, device, mkey):
        raise NotImplementedError('DeviceManager subclasses must implement switch_profile()')

    def reset_states(self):
        """ Put every started device back into its default state. Called
            when the active client goes away.
        """

        pass


# end of class DeviceManager



class MemoryDeviceManager(DeviceManager):
    """ A :class:`DeviceManager` holding every device in memory. Devices are
        added with :func:`add`; nothing is ever written to hardware.
    """

    def __init__(self):

        self.devices = dict()
        self.lock = threading.Lock()


    def add(self, id, vendor='', product='', name='', started=True):

        device = Device(id, vendor, product, name)
        device.started = started

        self.lock.acquire()
        self.devices[id] = device
        self.lock.release()

        return device


    def _device(self, id):

        try:
            return self.devices[id]
        except KeyError:
            raise KeyError('unknown device: ' + repr(id)) from None


    def _started(self, id):

        device = self._device(id)

        if not device.started:
            log.debug('device %s is stopped', id)
            return None

        return device


    def started_devices(self):
        return sorted(id for id, device in self.devices.items() if device.started)


    def stopped_devices(self):
        return sorted(id for id, device in self.devices.items() if not device.started)


    def start_device(self, id):

        device = self._device(id)
        if device.started:
            return False

        device.started = True
        return True


    def stop_device(self, id):

        device = self._device(id)
        if not device.started:
            return False

        device.started = False
        return True


    def properties(self, id):

        device = self._device(id)
        return [device.vendor, device.product, device.name, device.status]


    def devices_map(self):

        devices = dict()

        for id, device in self.devices.items():
            devices[id] = DeviceProperties(device.status, device.vendor, device.product, device.name, device.config_file)

        return devices


    def lcd_plugins(self, id):

        device = self._device(id)
        return [LCDPluginProperties(*plugin) for plugin in device.lcd_plugins]


    def set_backlight_color(self, id, red, green, blue):

        device = self._started(id)
        if device is None:
            return False

        device.color = (red, green, blue)
        return True


    def get_macro(self, id, mkey, gkey):

        device = self._device(id)
        return list(device.banks[MKeyID(mkey)].get(GKeyID(gkey), ()))


    def set_macro(self, id, mkey, gkey, macro):

        device = self._started(id)
        if device is None:
            return False

        bank = device.banks[MKeyID(mkey)]

        if macro:
            bank[GKeyID(gkey)] = list(macro)
        else:
            bank.pop(GKeyID(gkey), None)

        return True


    def reset_macros_bank(self, id, mkey):

        device = self._started(id)
        if device is None:
            return False

        device.banks[MKeyID(mkey)].clear()
        return True


    def get_macros_bank(self, id, mkey):

        device = self._device(id)
        bank = device.banks[MKeyID(mkey)]

        copy = dict()
        for gkey, macro in bank.items():
            copy[gkey] = list(macro)

        return copy


    def set_mkeys_leds(self, id, keys):

        device = self._started(id)
        if device is None:
            return False

        device.leds = sorted(set(MKeyID(key) for key in keys))
        return True


    def switch_profile(self, id, mkey):

        device = self._started(id)
        if device is None:
            return False

        device.profile = MKeyID(mkey)
        device.leds = [device.profile]
        return True


    def reset_states(self):

        for device in self.devices.values():
            if device.started:
                device.leds = list()
                device.profile = MKeyID.M0


# end of class MemoryDeviceManager



class Client:
    """ One registered desktop session.
    """

    def __init__(self, session):

        self.session = session
        self.state = 'unknown'
        self.changes = 0


    def __repr__(self):
        return 'Client(%s, %s)' % (repr(self.session), self.state)


# end of class Client



class Service:
    """ The clients and devices manager handlers, registered on *daemon*
        by :func:`register`, and serving requests with the *devices*
        manager.
    """

    def __init__(self, daemon, devices):

        self.daemon = daemon
        self.devices = devices
        self.clients = dict()
        self.stopping = threading.Event()

        settings = daemon.settings
        self.clients_path = settings.path(settings['clients_object'])
        self.clients_interface = settings['clients_interface']
        self.devices_path = settings.path(settings['devices_object'])
        self.devices_interface = settings['devices_interface']

        self._lock = threading.Lock()
        self._pending = threading.local()


    def register(self):
        """ Register every handler and declare every signal on the daemon.
        """

        daemon = self.daemon
        client = arg_in(ArgType.STRING, 'client_unique_id', 'must be a valid client ID')
        device = arg_in(ArgType.STRING, 'device_id', 'device ID coming from GetStartedDevices')
        mkey = arg_in(ArgType.MKEY_ID, 'macro_bankID', 'macro bank ID')
        gkey = arg_in(ArgType.GKEY_ID, 'macro_keyID', 'macro key ID')
        success = arg_out(ArgType.BOOLEAN, 'did_it_succeed')

        path = self.clients_path
        interface = self.clients_interface

        daemon.add_async_method(path, interface, 'RegisterClient',
            (arg_in(ArgType.STRING, 'client_session_object_path', 'current session object path'),
             arg_out(ArgType.BOOLEAN, 'did_register_succeeded', 'did the RegisterClient method succeeded ?'),
             arg_out(ArgType.STRING, 'failure_reason_or_client_id', 'if register success, the client ID, otherwise the failure reason', deferred=True)),
            self.register_client, self.complete_register_client)

        daemon.add_method(path, interface, 'UnregisterClient',
            (client, arg_out(ArgType.BOOLEAN, 'did_unregister_succeeded', 'did the UnregisterClient method succeeded ?')),
            self.unregister_client)

        daemon.add_method(path, interface, 'UpdateClientState',
            (client, arg_in(ArgType.STRING, 'client_new_state', 'client new state'), success),
            self.update_client_state)

        daemon.add_signal(path, interface, 'DaemonIsStopping', (), self.daemon_is_stopping)
        daemon.add_signal(path, interface, 'SomethingChanged', (client,), self.something_changed)

        path = self.devices_path
        interface = self.devices_interface

        daemon.add_method(path, interface, 'StopDevice', (client, device, success), self.stop_device)
        daemon.add_method(path, interface, 'StartDevice', (client, device, success), self.start_device)
        daemon.add_method(path, interface, 'RestartDevice', (client, device, success), self.restart_device)

        daemon.add_method(path, interface, 'GetStartedDevices',
            (client, arg_out(ArgType.STRING_ARRAY, 'array_of_strings', 'array of started devices ID strings')),
            self.get_started_devices)

        daemon.add_method(path, interface, 'GetStoppedDevices',
            (client, arg_out(ArgType.STRING_ARRAY, 'array_of_strings', 'array of stopped devices ID strings')),
            self.get_stopped_devices)

        daemon.add_method(path, interface, 'GetDeviceProperties',
            (client, device, arg_out(ArgType.STRING_ARRAY, 'array_of_strings', 'array of device properties')),
            self.get_device_properties)

        daemon.add_method(path, interface, 'GetDevicesList',
            (client, arg_out(ArgType.DEVICES_MAP, 'devices_map', 'every known device and its properties')),
            self.get_devices_list)

        daemon.add_method(path, interface, 'GetDeviceLCDPluginsProperties',
            (client, device, arg_out(ArgType.LCD_PLUGINS_ARRAY, 'lcd_plugins', 'LCD screen plugins of the device')),
            self.get_device_lcd_plugins_properties)

        daemon.add_method(path, interface, 'SetDeviceBacklightColor',
            (client, device,
             arg_in(ArgType.BYTE, 'red_byte', 'red byte for the RGB color to be set'),
             arg_in(ArgType.BYTE, 'green_byte', 'green byte for the RGB color to be set'),
             arg_in(ArgType.BYTE, 'blue_byte', 'blue byte for the RGB color to be set'),
             success),
            self.set_device_backlight_color)

        daemon.add_method(path, interface, 'GetDeviceMacro',
            (client, device, mkey, gkey, arg_out(ArgType.MACRO, 'macro_array', 'macro array')),
            self.get_device_macro)

        # The macro consumes every remaining byte, so it must come last.
        daemon.add_method(path, interface, 'SetDeviceMacro',
            (client, device, mkey, gkey, arg_in(ArgType.MACRO, 'macro_array', 'macro array'), success),
            self.set_device_macro)

        daemon.add_method(path, interface, 'ResetDeviceMacrosBank',
            (client, device, mkey, success), self.reset_device_macros_bank)

        daemon.add_method(path, interface, 'GetDeviceMacrosBank',
            (client, device, mkey, arg_out(ArgType.MACROS_BANK, 'macros_bank', 'macros bank')),
            self.get_device_macros_bank)

        daemon.add_method(path, interface, 'SetDeviceMKeysLeds',
            (client, device, arg_in(ArgType.MKEY_ID_ARRAY, 'mkeys_ids', 'M-keys to light up'), success),
            self.set_device_mkeys_leds)

        daemon.add_method(path, interface, 'SwitchProfile',
            (client, device, mkey, success), self.switch_profile)

        devices = arg_out(ArgType.STRING_ARRAY, 'devices_ids', 'array of devices ID strings')

        daemon.declare_signal(path, interface, 'DevicesStarted', (devices,))
        daemon.declare_signal(path, interface, 'DevicesStopped', (devices,))
        daemon.declare_signal(path, interface, 'MacroRecorded',
            (arg_out(ArgType.STRING, 'device_id'),
             arg_out(ArgType.MKEY_ID, 'macro_bankID'),
             arg_out(ArgType.GKEY_ID, 'macro_keyID')))


    # Clients manager.

    def register_client(self, session):

        self._lock.acquire()

        try:
            for id, client in self.clients.items():
                if client.session == session:
                    log.warning('client already registered: %s', session)
                    self._pending.text = 'already registered'
                    return False

            id = str(uuid.uuid4())
            self.clients[id] = Client(session)
        finally:
            self._lock.release()

        log.info('registering new client with ID: %s', id)
        self._pending.text = id
        return True


    def complete_register_client(self, completer):

        text = self._pending.text
        del self._pending.text

        completer.append_deferred(text)
        completer.commit()


    def unregister_client(self, id):

        self._lock.acquire()
        try:
            client = self.clients.pop(id, None)
        finally:
            self._lock.release()

        if client is None:
            log.warning('tried to unregister unknown client: %s', id)
            return False

        log.info('unregistering client: %s', id)

        if client.state == 'active':
            self.devices.reset_states()

        return True


    def update_client_state(self, id, state):

        client = self._client(id)
        if client is None:
            return False

        log.debug('updating client state: %s - %s', id, state)
        client.state = state
        return True


    def daemon_is_stopping(self):
        log.info('stop requested on the bus')
        self.stopping.set()


    def something_changed(self, id):

        client = self._client(id)
        if client is None:
            return

        client.changes += 1
        log.debug('client %s reports a change', id)


    def _client(self, id):

        client = self.clients.get(id)

        if client is None:
            log.warning('unknown client: %s', id)

        return client


    # Devices manager.

    def stop_device(self, id, device):

        if self._client(id) is None:
            return False

        stopped = self.devices.stop_device(device)
        if stopped:
            self.daemon.emit_signal(self.devices_path, self.devices_interface, 'DevicesStopped',
                                    (ArgType.STRING_ARRAY, [device]))

        return stopped


    def start_device(self, id, device):

        if self._client(id) is None:
            return False

        started = self.devices.start_device(device)
        if started:
            self.daemon.emit_signal(self.devices_path, self.devices_interface, 'DevicesStarted',
                                    (ArgType.STRING_ARRAY, [device]))

        return started


    def restart_device(self, id, device):

        if not self.stop_device(id, device):
            log.error('device restarting failure: stop failed')
            return False

        if not self.start_device(id, device):
            log.error('device restarting failure: start failed')
            return False

        return True


    def get_started_devices(self, id):

        if self._client(id) is None:
            return []

        return self.devices.started_devices()


    def get_stopped_devices(self, id):

        if self._client(id) is None:
            return []

        return self.devices.stopped_devices()


    def get_device_properties(self, id, device):

        if self._client(id) is None:
            return []

        return self.devices.properties(device)


    def get_devices_list(self, id):

        if self._client(id) is None:
            return {}

        return self.devices.devices_map()


    def get_device_lcd_plugins_properties(self, id, device):

        if self._client(id) is None:
            return []

        return self.devices.lcd_plugins(device)


    def set_device_backlight_color(self, id, device, red, green, blue):

        if self._client(id) is None:
            return False

        return self.devices.set_backlight_color(device, red, green, blue)


    def get_device_macro(self, id, device, mkey, gkey):

        if self._client(id) is None:
            return []

        return self.devices.get_macro(device, mkey, gkey)


    def set_device_macro(self, id, device, mkey, gkey, macro):

        if self._client(id) is None:
            return False

        return self.devices.set_macro(device, mkey, gkey, macro)


    def reset_device_macros_bank(self, id, device, mkey):

        if self._client(id) is None:
            return False

        return self.devices.reset_macros_bank(device, mkey)


    def get_device_macros_bank(self, id, device, mkey):

        if self._client(id) is None:
            return {}

        return self.devices.get_macros_bank(device, mkey)


    def set_device_mkeys_leds(self, id, device, keys):

        if self._client(id) is None:
            return False

        return self.devices.set_mkeys_leds(device, keys)


    def switch_profile(self, id, device, mkey):

        if self._client(id) is None:
            return False

        return self.devices.switch_profile(device, mkey)


    def macro_recorded(self, device, mkey, gkey, macro):
        """ Store a macro recorded on the keyboard itself, and tell every
            client about it.
        """

        if not self.devices.set_macro(device, mkey, gkey, macro):
            raise ValueError('cannot record a macro on stopped device %s' % (device))

        self.daemon.emit_signal(self.devices_path, self.devices_interface, 'MacroRecorded',
                                (ArgType.STRING, device),
                                (ArgType.MKEY_ID, mkey),
                                (ArgType.GKEY_ID, gkey))


# end of class Service



class DeviceDaemon(Daemon):
    """ A :class:`gkbus.daemon.Daemon` serving the device-control service.
        The *devices* argument is the :class:`DeviceManager` to delegate to;
        an empty :class:`MemoryDeviceManager` is used if none is given.
    """

    def __init__(self, settings=None, transports=None, arguments=None, devices=None):

        if devices is None:
            devices = MemoryDeviceManager()

        self.devices = devices
        self.service = None

        Daemon.__init__(self, settings, transports, arguments)


    def setup(self):
        self.service = Service(self, self.devices)
        self.service.register()


# end of class DeviceDaemon


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
