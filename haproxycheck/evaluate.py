# -*- coding: utf-8 -*-
# vim:fenc=utf-8
# pylint: disable=too-many-return-statements
"""
haproxycheck.evaluate
~~~~~~~~~~~~~~~~~~~~~

This module selects the lines of HAProxy statistics to check and evaluates
them against thresholds in order to produce a verdict.
"""
import re
import logging
from collections import namedtuple

from haproxycheck.fields import FRONTEND, BACKEND
from haproxycheck.utils import ConfigError

log = logging.getLogger('root')  # pylint: disable=I0011,C0103

OK = 0
WARNING = 1
CRITICAL = 2
UNKNOWN = 3
STATUS_NAMES = {OK: 'OK', WARNING: 'WARNING', CRITICAL: 'CRITICAL',
                UNKNOWN: 'UNKNOWN'}

POLICY_FIELDS = [
    'service',
    'all_services',
    'exact_match',
    'include_maint',
    'missing_ok',
    'missing_fail',
    'warn_percent',
    'crit_percent',
    'session_warn_percent',
    'session_crit_percent',
    'backend_session_warn_percent',
    'backend_session_crit_percent',
    'min_warn_count',
    'min_crit_count',
]
POLICY_DEFAULTS = {
    'service': None,
    'all_services': False,
    'exact_match': False,
    'include_maint': False,
    'missing_ok': False,
    'missing_fail': False,
    'warn_percent': 50,
    'crit_percent': 25,
    'session_warn_percent': 75,
    'session_crit_percent': 90,
    'backend_session_warn_percent': None,
    'backend_session_crit_percent': None,
    'min_warn_count': 0,
    'min_crit_count': 0,
}

Policy = namedtuple('Policy', POLICY_FIELDS)
Policy.__new__.__defaults__ = tuple(POLICY_DEFAULTS[x] for x in POLICY_FIELDS)

Verdict = namedtuple('Verdict', ['status', 'message'])


def service_up(row):
    """
    Check if a server is up.

    OPEN is reported for frontends and 'no check' for servers without health
    checking, both count as up. Draining servers are still serving.

    Arguments:
        row (obj): A StatsRow object

    Returns:
        True if the server is up otherwise False.
    """
    status = row.status or ''

    return (status.startswith('UP')
            or status == 'OPEN'
            or status == 'no check'
            or status.startswith('DRAIN'))


def service_pattern(policy):
    """
    Compile the regular expression which matches proxy names.

    Raises:
        ConfigError when no service is set or the expression is invalid.
    """
    if policy.service is None:
        raise ConfigError('No service specified')
    pattern = policy.service
    if policy.exact_match:
        pattern = '^{p}$'.format(p=pattern)
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError("invalid service pattern '{p}': {e}"
                          .format(p=policy.service, e=exc))


def check_policy(policy):
    """
    Make sure the policy selects something before any statistics are fetched.

    Raises:
        ConfigError when neither a service nor all services are set or the
        service pattern is invalid.
    """
    if not policy.all_services:
        service_pattern(policy)


def _matched(rows, policy):
    if policy.all_services:
        return list(rows)
    regexp = service_pattern(policy)

    return [row for row in rows
            if row.pxname is not None and regexp.search(row.pxname)]


def _not_in_maint(rows, policy):
    if policy.include_maint:
        return rows

    return [row for row in rows if not (row.status or '').startswith('MAINT')]


def select_services(rows, policy):
    """
    Select the lines of statistics to check.

    Frontend and backend lines are excluded unless all services are checked,
    servers in maintenance are excluded unless include_maint is set.

    Arguments:
        rows (list): A list of StatsRow objects.
        policy (obj): A Policy object.

    Returns:
        A list of StatsRow objects.
    """
    services = _matched(rows, policy)
    if not policy.all_services:
        services = [row for row in services
                    if row.svname not in (FRONTEND, BACKEND)]

    return _not_in_maint(services, policy)


def select_backends(rows, policy):
    """
    Select the backend lines for the per backend session checks.

    Arguments:
        rows (list): A list of StatsRow objects.
        policy (obj): A Policy object.

    Returns:
        A list of StatsRow objects.
    """
    backends = [row for row in _matched(rows, policy)
                if row.svname == BACKEND]

    return _not_in_maint(backends, policy)


def over_session_limit(rows, threshold):
    """
    Return rows with a session limit which exceed a percentage of it.

    Rows without a session limit are never returned.
    """
    if threshold is None:
        return []

    return [row for row in rows
            if row.session_percentage() is not None
            and row.session_percentage() > threshold]


def failed_name(row):
    """Format the name of a server which is down."""
    if row.check_status:
        return '{n}[{c}]'.format(n=row.name, c=row.check_status)

    return row.name


def format_sessions(rows):
    """Format the sessions of rows which exceeded their limit."""
    return ', '.join('{c} of {l} {p}.{s}'.format(c=row.scur,
                                                 l=row.slim,
                                                 p=row.pxname,
                                                 s=row.svname)
                     for row in rows)


def format_backends(rows):
    """Format the sessions of backends which exceeded their limit."""
    return ', '.join('current sessions: {c}, maximum sessions: {m} for {p} '
                     'backend.'.format(c=row.scur, m=row.smax, p=row.pxname)
                     for row in rows)


def evaluate(rows, policy):
    """
    Evaluate statistics against the thresholds of a policy.

    The rules are applied in order and the first one which matches decides
    the verdict.

    NOTE: backends over the warning percentage of their session limit raise a
    CRITICAL verdict, not a WARNING. Existing deployments rely on it.

    Arguments:
        rows (list): A list of StatsRow objects, all lines of statistics.
        policy (obj): A Policy object.

    Raises:
        ConfigError when policy doesn't select any service.

    Returns:
        A Verdict object.
    """
    services = select_services(rows, policy)
    pattern = policy.service or ''
    if not services:
        message = 'No services matching /{p}/'.format(p=pattern)
        if policy.missing_fail:
            return Verdict(CRITICAL, message)
        elif policy.missing_ok:
            return Verdict(OK, message)
        return Verdict(WARNING, message)

    total = len(services)
    up_services = [row for row in services if service_up(row)]
    percent_up = 100 * len(up_services) // total
    failed_names = [failed_name(row) for row in services
                    if not service_up(row)]
    log.debug('%s of %s services are up (%s%%)', len(up_services), total,
              percent_up)

    critical_sessions = over_session_limit(services,
                                           policy.session_crit_percent)
    warning_sessions = over_session_limit(services,
                                          policy.session_warn_percent)
    backends = select_backends(rows, policy)
    critical_backends = over_session_limit(
        backends, policy.backend_session_crit_percent)
    warning_backends = over_session_limit(
        backends, policy.backend_session_warn_percent)

    status = 'UP: {u}% of {t} /{p}/ services'.format(u=percent_up,
                                                     t=total,
                                                     p=pattern)
    if failed_names:
        status += ', DOWN: {f}'.format(f=', '.join(failed_names))

    if total < policy.min_crit_count:
        return Verdict(CRITICAL, status)
    elif percent_up < policy.crit_percent:
        return Verdict(CRITICAL, status)
    elif critical_sessions and policy.backend_session_crit_percent is None:
        return Verdict(CRITICAL, status + '; Active sessions critical: '
                       + format_sessions(critical_sessions))
    elif (policy.backend_session_crit_percent is not None
          and critical_backends):
        return Verdict(CRITICAL, status + '; Active backends critical: '
                       + format_backends(critical_backends))
    elif total < policy.min_warn_count:
        return Verdict(WARNING, status)
    elif percent_up < policy.warn_percent:
        return Verdict(WARNING, status)
    elif warning_sessions and policy.backend_session_warn_percent is None:
        return Verdict(WARNING, status + '; Active sessions warning: '
                       + format_sessions(warning_sessions))
    elif (policy.backend_session_warn_percent is not None
          and warning_backends):
        return Verdict(CRITICAL, status + '; Active backends warning: '
                       + format_backends(warning_backends))

    return Verdict(OK, status)
