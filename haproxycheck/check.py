# -*- coding: utf-8 -*-
# vim:fenc=utf-8
"""Checks the health of services behind HAProxy using its statistics

Usage:
    haproxycheck [options]

Options:
    -S, --stats <source>       HAProxy web stats hostname or path to stats
                               socket
    -P, --port <port>          HAProxy web stats port [default from conf: 80]
    -q, --statspath <path>     HAProxy web stats path [default from conf: /]
    -u, --user <username>      HAProxy web stats username
    -p, --pass <password>      HAProxy web stats password
    --use-ssl                  use SSL to connect to HAProxy web stats
    -t, --timeout <seconds>    timeout for fetching statistics
    -w, --warn-percent <pct>   warning percent of services up [conf: 50]
    -c, --crit-percent <pct>   critical percent of services up [conf: 25]
    -W, --session-warn-percent <pct>
                               session limit warning percent [conf: 75]
    -C, --session-crit-percent <pct>
                               session limit critical percent [conf: 90]
    -b, --backend-session-warn-percent <pct>
                               per backend session limit warning percent
    -B, --backend-session-crit-percent <pct>
                               per backend session limit critical percent
    -M, --min-warn-count <count>
                               minimum server warning count [conf: 0]
    -X, --min-crit-count <count>
                               minimum server critical count [conf: 0]
    -A, --all-services         check all services
    --include-maint            include servers in maintenance mode while
                               checking (as DOWN)
    -m, --missing-ok           report OK when no service matches
    -s, --service <name>       service name to check, a regular expression
    -e, --exact-match          service name must match exactly
    -f, --missing-fail         report CRITICAL when no service matches
    -F, --file <file>          configuration file with settings
                               [default: /etc/haproxycheck.conf]
    -l, --loglevel <level>     log level
    --print                    show default settings
    --print-conf               show configuration
    -h, --help                 show this screen
    -v, --version              show version
"""
import sys
import copy
import logging
from configparser import ConfigParser, ExtendedInterpolation, ParsingError
from docopt import docopt

from haproxycheck import __version__ as VERSION
from haproxycheck import DEFAULT_OPTIONS
from haproxycheck.evaluate import (Policy, Verdict, UNKNOWN, STATUS_NAMES,
                                   check_policy, evaluate)
from haproxycheck.fetch import get_stats
from haproxycheck.utils import (CheckError, ConfigError, configuration_check,
                                get_option)

LOG_FORMAT = ('%(asctime)s [%(process)d] [%(funcName)-20s] '
              '%(levelname)-8s %(message)s')
logging.basicConfig(format=LOG_FORMAT)
log = logging.getLogger('root')  # pylint: disable=I0011,C0103

SECTION = 'check'
# command line options which take a value
VALUE_OPTIONS = [
    'stats',
    'port',
    'statspath',
    'user',
    'pass',
    'timeout',
    'warn-percent',
    'crit-percent',
    'session-warn-percent',
    'session-crit-percent',
    'backend-session-warn-percent',
    'backend-session-crit-percent',
    'min-warn-count',
    'min-crit-count',
    'service',
    'loglevel',
]
FLAG_OPTIONS = [
    'use-ssl',
    'all-services',
    'include-maint',
    'missing-ok',
    'exact-match',
    'missing-fail',
]
SECRET_OPTIONS = ['pass']


def apply_arguments(config, args):
    """
    Override configuration with the options set on the command line.

    Arguments:
        config (obj): A configParser object which holds configuration.
        args (dict): Parsed command line arguments as returned by docopt.
    """
    for option in VALUE_OPTIONS:
        value = args.get('--{o}'.format(o=option))
        if value is not None:
            # escape '$' as values aren't subject to interpolation
            config.set(SECTION, option, value.replace('$', '$$'))
    for option in FLAG_OPTIONS:
        if args.get('--{o}'.format(o=option)):
            config.set(SECTION, option, 'true')


def build_policy(config):
    """
    Build a Policy out of the configuration.

    Arguments:
        config (obj): A configParser object which holds configuration.

    Returns:
        A Policy object.
    """
    def _get(option):
        return get_option(config, SECTION, option)

    return Policy(
        service=_get('service'),
        all_services=_get('all-services'),
        exact_match=_get('exact-match'),
        include_maint=_get('include-maint'),
        missing_ok=_get('missing-ok'),
        missing_fail=_get('missing-fail'),
        warn_percent=_get('warn-percent'),
        crit_percent=_get('crit-percent'),
        session_warn_percent=_get('session-warn-percent'),
        session_crit_percent=_get('session-crit-percent'),
        backend_session_warn_percent=_get('backend-session-warn-percent'),
        backend_session_crit_percent=_get('backend-session-crit-percent'),
        min_warn_count=_get('min-warn-count'),
        min_crit_count=_get('min-crit-count'),
    )


def run(config):
    """
    Fetch statistics and evaluate them.

    Arguments:
        config (obj): A configParser object which holds configuration.

    Returns:
        A Verdict object, UNKNOWN when the check can't be performed.
    """
    try:
        configuration_check(config, SECTION)
    except ValueError as exc:
        return Verdict(UNKNOWN, str(exc))

    loglevel = config.get(SECTION, 'loglevel').upper()
    log.setLevel(getattr(logging, loglevel, None))

    try:
        policy = build_policy(config)
        check_policy(policy)
        source = get_option(config, SECTION, 'stats')
        if not source:
            raise ConfigError('No statistics source specified')
        rows = get_stats(source,
                         port=get_option(config, SECTION, 'port'),
                         path=config.get(SECTION, 'statspath'),
                         username=config.get(SECTION, 'user') or None,
                         password=config.get(SECTION, 'pass'),
                         use_ssl=get_option(config, SECTION, 'use-ssl'),
                         timeout=get_option(config, SECTION, 'timeout'))
    except CheckError as exc:
        log.error('check failed: %s', exc)
        return Verdict(UNKNOWN, str(exc))

    verdict = evaluate(rows, policy)
    log.info('verdict %s: %s', STATUS_NAMES[verdict.status], verdict.message)

    return verdict


def print_section(config):
    """Print the options of our section, secrets are masked."""
    print("[{}]".format(SECTION))
    for key, value in sorted(config.items(SECTION, raw=True)):
        if key in SECRET_OPTIONS and value:
            value = '********'
        print("{k} = {v}".format(k=key, v=value))


def main():
    """Parse CLI arguments and launch main program"""
    args = docopt(__doc__, version=VERSION)

    config = ConfigParser(interpolation=ExtendedInterpolation())
    # Set defaults for all sections
    config.read_dict(copy.copy(DEFAULT_OPTIONS))
    # Load configuration from a file. NOTE: ConfigParser doesn't warn if user
    # sets a filename which doesn't exist, in this case defaults will be used.
    try:
        config.read(args['--file'])
    except ParsingError as exc:
        print('HAPROXY UNKNOWN: {e}'.format(e=exc))
        sys.exit(UNKNOWN)

    if args['--print']:
        defaults = ConfigParser(interpolation=ExtendedInterpolation())
        defaults.read_dict(copy.copy(DEFAULT_OPTIONS))
        print_section(defaults)
        sys.exit(0)

    apply_arguments(config, args)
    if args['--print-conf']:
        print_section(config)
        sys.exit(0)

    verdict = run(config)
    print('HAPROXY {s}: {m}'.format(s=STATUS_NAMES[verdict.status],
                                    m=verdict.message))
    sys.exit(verdict.status)

# This is the standard boilerplate that calls the main() function.
if __name__ == '__main__':
    main()
