# -*- coding: utf-8 -*-
# vim:fenc=utf-8
"""
haproxycheck.utils
~~~~~~~~~~~~~~~~~~

This module provides exceptions, functions and constants that are used within
haproxycheck.
"""
import os
import stat
import io
import logging
import configparser
import re
import pandas

from haproxycheck.fields import StatsRow

log = logging.getLogger('root')  # pylint: disable=I0011,C0103

HEADER_KEY = re.compile(r'[\w-]+')

OPTIONS_TYPE = {
    'check': {
        'loglevel': 'get',
        'stats': 'getoptional',
        'service': 'getoptional',
        'port': 'getint',
        'statspath': 'get',
        'user': 'get',
        'pass': 'get',
        'use-ssl': 'getboolean',
        'timeout': 'getfloat',
        'warn-percent': 'getint',
        'crit-percent': 'getint',
        'session-warn-percent': 'getint',
        'session-crit-percent': 'getint',
        'backend-session-warn-percent': 'getoptionalint',
        'backend-session-crit-percent': 'getoptionalint',
        'min-warn-count': 'getint',
        'min-crit-count': 'getint',
        'all-services': 'getboolean',
        'include-maint': 'getboolean',
        'missing-ok': 'getboolean',
        'missing-fail': 'getboolean',
        'exact-match': 'getboolean',
    },
}


class CheckError(Exception):
    """
    Base class of all errors which turn the result of the check to UNKNOWN
    """


class FetchError(CheckError):
    """
    Statistics couldn't be retrieved from HAProxy or they are unusable
    """


class ConfigError(CheckError):
    """
    The check was invoked with an invalid configuration
    """


def is_unix_socket(path):
    """
    Check if path is a valid UNIX socket.

    Arguments:
        path (str): A file name path

    Returns:
        True if path is a valid UNIX socket otherwise False.
    """
    try:
        mode = os.stat(path).st_mode
    except (OSError, ValueError):
        return False

    return stat.S_ISSOCK(mode)


def getoptional(config, section, option):
    """Return an option as string or None when it is unset or empty."""
    return config.get(section, option, fallback='') or None


def getoptionalint(config, section, option):
    """
    Return an option as integer or None when it is set to an empty value.

    ConfigParser has no notion of an unset option once defaults are loaded,
    thus an empty value means "not configured" while 0 is a valid setting.
    """
    value = config.get(section, option, fallback='').strip()
    if not value:
        return None

    return int(value)


def get_option(config, section, option):
    """
    Return the value of an option converted by the getter set in OPTIONS_TYPE
    """
    getter = OPTIONS_TYPE[section][option]
    if getter == 'getoptionalint':
        return getoptionalint(config, section, option)
    if getter == 'getoptional':
        return getoptional(config, section, option)

    return getattr(config, getter)(section, option)


def configuration_check(config, section):
    """
    Perform a sanity check on configuration

    Arguments:
        config (obg): A configparser object which holds our configuration.
        section (str): Section name

    Raises:
        ValueError on the first occureance of invalid configuration

    Returns:
        None if all checks are successful.
    """
    try:
        loglevel = config[section]['loglevel']
    except configparser.Error as exc:
        raise ValueError("invalid configuration, section:'{s}' option:'{o}' "
                         "error:{e}".format(s=section, o='loglevel', e=exc))
    num_level = getattr(logging, loglevel.upper(), None)
    if not isinstance(num_level, int):
        raise ValueError("invalid configuration, section:'{s}' option:'{o}' "
                         "error: invalid loglevel '{l}'"
                         .format(s=section,
                                 o='loglevel',
                                 l=loglevel))

    for option in OPTIONS_TYPE[section]:
        try:
            get_option(config, section, option)
        except (configparser.Error, ValueError) as exc:
            # For some errors ConfigParser mentions section/option names and
            # for others not.
            if 'section' not in str(exc):
                raise ValueError("invalid configuration, section:'{s}' "
                                 "option:'{p}' error:{e}"
                                 .format(s=section,
                                         p=option,
                                         e=str(exc)))
            else:
                raise ValueError("invalid configuration, error:{e}"
                                 .format(e=str(exc)))


def header_keys(columns):
    """
    Map the column names of a CSV header to field names.

    HAProxy decorates the header, e.g. '# pxname', thus the field name is the
    first run of word characters and hyphens of a column. Columns without
    such run, like the empty one created by the trailing comma of HAProxy
    output, are mapped to None.

    Arguments:
        columns (list): Column names as found in the header.

    Returns:
        A list of field names, None for columns to ignore.
    """
    keys = []
    for column in columns:
        match = HEADER_KEY.search(str(column))
        if match is None or str(column).startswith('Unnamed:'):
            keys.append(None)
        else:
            keys.append(match.group(0))

    return keys


def parse_stats(text):
    """
    Parse the CSV output of HAProxy statistics.

    Arguments:
        text (str): The CSV payload, the first non blank line is the header.

    Raises:
        FetchError when the payload can't be parsed.

    Returns:
        A list of StatsRow objects, one per line of statistics.
    """
    try:
        data_frame = pandas.read_csv(io.StringIO(text),
                                     dtype=str,
                                     keep_default_na=False,
                                     skip_blank_lines=True,
                                     index_col=False)
    except ValueError as exc:
        raise FetchError('failed to parse statistics: {e}'.format(e=exc))

    keys = header_keys(data_frame.columns)
    log.debug('parsed %s lines with %s columns', len(data_frame), len(keys))
    rows = []
    for values in data_frame.itertuples(index=False, name=None):
        # short lines are filled with NaN by pandas
        record = {key: value if isinstance(value, str) else None
                  for key, value in zip(keys, values)
                  if key is not None}
        rows.append(StatsRow.from_record(record))

    return rows
