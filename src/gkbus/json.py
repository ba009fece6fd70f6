''' Wrapper module for the JSON encoding used by the network transports and
    by the configuration files. Both :func:`dumps` and :func:`loads` deal in
    bytes, which is what msgspec produces natively; callers writing text
    files are expected to decode the result themselves.
'''

import msgspec


encoder = msgspec.json.Encoder()
decoder = msgspec.json.Decoder()

dumps = encoder.encode
loads = decoder.decode

DecodeError = msgspec.DecodeError


def dumps_pretty(thing):
    ''' Same as :func:`dumps`, but indented for human consumption. This is
        what gets written to the on-disk configuration files.
    '''

    return msgspec.json.format(encoder.encode(thing), indent=4)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
