# -*- coding: utf-8 -*-
# vim:fenc=utf-8
# pylint: disable=too-many-arguments
"""
haproxycheck.fetch
~~~~~~~~~~~~~~~~~~

This module retrieves HAProxy statistics in CSV format either over a UNIX
socket, with the 'show stat' command, or over the HTTP statistics page.
"""
import os
import socket
import logging
import requests
from requests.auth import HTTPBasicAuth

from haproxycheck.utils import FetchError, is_unix_socket, parse_stats

log = logging.getLogger('root')  # pylint: disable=I0011,C0103

CMD = 'show stat'
CSV_SUFFIX = ';csv;norefresh'
BUFFER_SIZE = 65536


def stats_path(path):
    """Return the path of the statistics page with a leading slash."""
    if not path.startswith('/'):
        path = '/' + path

    return path


def fetch_socket(socket_file, timeout=None):
    """
    Fetch statistics from a UNIX socket.

    Sends the 'show stat' command to HAProxy and reads the response until
    HAProxy closes the connection.

    Arguments:
        socket_file (str): The full path of the UNIX socket file to connect to.
        timeout (float): Timeout for connect and read operations.

    Raises:
        FetchError when the conversation with HAProxy fails.

    Returns:
        The response as string.
    """
    log.debug('connecting to UNIX socket %s', socket_file)
    data = []
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as unix_socket:
            unix_socket.settimeout(timeout)
            unix_socket.connect(socket_file)
            log.debug('sending command "%s" to UNIX socket %s', CMD,
                      socket_file)
            unix_socket.sendall('{c}\n'.format(c=CMD).encode())
            while True:
                chunk = unix_socket.recv(BUFFER_SIZE)
                if not chunk:
                    break
                data.append(chunk)
    except OSError as exc:
        raise FetchError('Failed to fetch from {s}: {e}'
                         .format(s=socket_file, e=exc))

    log.debug('received %s bytes from UNIX socket %s',
              sum(len(x) for x in data), socket_file)

    return b''.join(data).decode('utf-8', 'replace')


def fetch_http(server, port=80, path='/', username=None, password=None,
               use_ssl=False, timeout=None):
    """
    Fetch statistics from the HTTP statistics page of HAProxy.

    Arguments:
        server (str): Hostname or IP address of HAProxy.
        port (int): Port of the statistics page.
        path (str): Path of the statistics page.
        username (str): Username for basic authentication, no authentication
            is performed when it isn't set.
        password (str): Password for basic authentication.
        use_ssl (bool): Use HTTPS.
        timeout (float): Timeout for connect and read operations.

    Raises:
        FetchError when the request fails or the response isn't 200.

    Returns:
        The response body as string.
    """
    path = stats_path(path)
    host = server
    # IPv6 literals need brackets in URLs
    if ':' in host and not host.startswith('['):
        host = '[{h}]'.format(h=host)
    url = '{s}://{h}:{p}{u}{c}'.format(s='https' if use_ssl else 'http',
                                       h=host,
                                       p=port,
                                       u=path,
                                       c=CSV_SUFFIX)
    auth = None
    if username:
        auth = HTTPBasicAuth(username, password or '')

    log.debug('requesting %s', url)
    try:
        response = requests.get(url,
                                auth=auth,
                                timeout=timeout,
                                allow_redirects=False)
    except requests.exceptions.RequestException as exc:
        raise FetchError('Failed to fetch from {s}:{p}{u}: {e}'
                         .format(s=server, p=port, u=path, e=exc))

    if response.status_code != 200:
        raise FetchError('Failed to fetch from {s}:{p}{u}: {c}'
                         .format(s=server, p=port, u=path,
                                 c=response.status_code))
    log.debug('received %s bytes from %s', len(response.content), url)

    return response.text


def fetch(source, port=80, path='/', username=None, password=None,
          use_ssl=False, timeout=None):
    """
    Fetch the raw CSV statistics from HAProxy.

    Arguments:
        source (str): Either the path of a UNIX socket or the hostname of the
            HTTP statistics page.
        Rest of arguments are passed to fetch_http().

    Raises:
        FetchError when statistics can't be retrieved.

    Returns:
        The CSV payload as string.
    """
    if is_unix_socket(source):
        return fetch_socket(source, timeout=timeout)
    if os.sep in source:
        raise FetchError('{s} is not a UNIX socket'.format(s=source))

    return fetch_http(source, port=port, path=path, username=username,
                      password=password, use_ssl=use_ssl, timeout=timeout)


def get_stats(source, **kwargs):
    """
    Fetch and parse statistics from HAProxy.

    Arguments:
        source (str): Either the path of a UNIX socket or the hostname of the
            HTTP statistics page.
        kwargs: Passed to fetch().

    Raises:
        FetchError when statistics can't be retrieved or parsed.

    Returns:
        A list of StatsRow objects.
    """
    return parse_stats(fetch(source, **kwargs))
