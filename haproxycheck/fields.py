"""
haproxycheck.fields
~~~~~~~~~~~~~~~~~~~

This module provides the field names of HAProxy statistics we know about and
the StatsRow type which holds a single line of them. Field names are the
column names found in the header of the CSV output of HAProxy.
"""
from collections import namedtuple

FRONTEND = 'FRONTEND'
BACKEND = 'BACKEND'

STRING_FIELDS = [
    'pxname',
    'svname',
    'status',
    'check_status',
    'last_chk',
    'addr',
    'mode',
]

INT_FIELDS = [
    'qcur',
    'qmax',
    'scur',
    'smax',
    'slim',
    'stot',
    'bin',
    'bout',
    'dreq',
    'dresp',
    'ereq',
    'econ',
    'eresp',
    'wretr',
    'wredis',
    'weight',
    'act',
    'bck',
    'chkfail',
    'chkdown',
    'lastchg',
    'downtime',
    'qlimit',
    'pid',
    'iid',
    'sid',
    'throttle',
    'lbtot',
    'type',
    'rate',
    'rate_lim',
    'rate_max',
    'check_code',
    'check_duration',
    'hrsp_1xx',
    'hrsp_2xx',
    'hrsp_3xx',
    'hrsp_4xx',
    'hrsp_5xx',
    'hrsp_other',
    'cli_abrt',
    'srv_abrt',
]

# pxname, svname, status, scur and slim are always emitted by HAProxy
REQUIRED_FIELDS = ['pxname', 'svname', 'status', 'scur', 'slim']

_StatsRow = namedtuple('StatsRow', STRING_FIELDS + INT_FIELDS + ['extra'])


def to_int(value):
    """
    Convert a CSV value to an integer.

    Arguments:
        value (str): A value as found in the CSV, None when it was absent.

    Returns:
        An integer, 0 when value is absent, empty or not a number.
    """
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


class StatsRow(_StatsRow):
    """
    A single line of HAProxy statistics.

    String fields are None when the value is absent or empty, integer fields
    are 0 in that case. Columns which aren't in STRING_FIELDS or INT_FIELDS are
    kept in the extra mapping.
    """
    __slots__ = ()

    @classmethod
    def from_record(cls, record):
        """
        Build a StatsRow out of a mapping of field name to raw value.

        Arguments:
            record (dict): Field names mapped to strings, None or '' mark a
                missing value.

        Returns:
            A StatsRow object
        """
        values = {name: record.get(name) or None for name in STRING_FIELDS}
        values.update(
            {name: to_int(record.get(name) or None) for name in INT_FIELDS})
        known = set(STRING_FIELDS) | set(INT_FIELDS)
        values['extra'] = {key: value or None
                           for key, value in record.items()
                           if key not in known}

        return cls(**values)

    @property
    def name(self):
        """The <proxy>/<server> name of the row."""
        return '{p}/{s}'.format(p=self.pxname, s=self.svname)

    def session_percentage(self):
        """
        Calculate the percentage of current sessions against the limit.

        Returns:
            A float or None if no session limit is set, a limit of 0 means
            unlimited.
        """
        if self.slim <= 0:
            return None

        return 100 * self.scur / self.slim
