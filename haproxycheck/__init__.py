# -*- coding: utf-8 -*-
# vim:fenc=utf-8
#
"""
A monitoring check for HAProxy which evaluates the statistics it exposes.
"""
__title__ = 'haproxycheck'
__license__ = 'Apache 2.0'
__version__ = '0.1.0'

DEFAULT_OPTIONS = {
    'DEFAULT': {
        'loglevel': 'warning',
    },
    'check': {
        'port': '80',
        'statspath': '/',
        'user': '',
        'pass': '',
        'use-ssl': 'false',
        'timeout': '10',
        'warn-percent': '50',
        'crit-percent': '25',
        'session-warn-percent': '75',
        'session-crit-percent': '90',
        'backend-session-warn-percent': '',
        'backend-session-crit-percent': '',
        'min-warn-count': '0',
        'min-crit-count': '0',
        'all-services': 'false',
        'include-maint': 'false',
        'missing-ok': 'false',
        'missing-fail': 'false',
        'exact-match': 'false',
    },
}
