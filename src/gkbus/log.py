""" One-time logging setup for a daemon process. Library modules only ever
    log through ``logging.getLogger(__name__)``; nothing is configured until
    :func:`setup` is called.
"""

import logging
import os

line_format = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
date_format = '%Y-%m-%d %H:%M:%S'


def setup(level=None):
    """ Send log records to stderr at the given *level*, a level name such
        as 'debug' or 'WARNING'. If no level is given the ``GKBUS_LOGLEVEL``
        environment variable is used, and INFO if that is not set either. A
        handler is only installed if the root logger does not have one yet.
        Returns the numeric level that was applied.
    """

    if level is None:
        level = os.environ.get('GKBUS_LOGLEVEL', 'INFO')

    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(line_format, date_format))
        root.addHandler(handler)

    numeric = logging.getLevelName(str(level).upper())

    if not isinstance(numeric, int):
        logging.getLogger(__name__).warning('unrecognized log level %s, using INFO', repr(level))
        numeric = logging.INFO

    root.setLevel(numeric)
    return numeric


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
