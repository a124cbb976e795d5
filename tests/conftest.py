"""Shared test fixtures."""

import os
import shutil
import socket
import tempfile
import threading

import pytest

from haproxycheck.fields import StatsRow

HEADER = '# pxname,svname,qcur,qmax,scur,smax,slim,stot,status,check_status,'

SAMPLE_STATS = '\n'.join([
    HEADER,
    'www,FRONTEND,,,12,80,2000,4411,OPEN,,',
    'www,web01,0,0,5,40,100,2100,UP,L7OK,',
    'www,web02,0,0,7,38,100,2300,UP 1/3,L7OK,',
    'www,web03,0,0,0,0,100,0,DOWN,L4CON,',
    'www,BACKEND,0,0,12,80,200,4400,UP,,',
    '',
    'api,FRONTEND,,,3,20,1000,900,OPEN,,',
    'api,api01,0,0,3,20,,890,no check,,',
    'api,api02,0,0,0,0,,10,MAINT,,',
    'api,BACKEND,0,0,3,20,100,900,UP,,',
    '',
])


def row(**fields):
    """Build a StatsRow, fields are given as strings like in the CSV."""
    return StatsRow.from_record(
        {key: str(value) for key, value in fields.items()})


@pytest.fixture
def sample_stats():
    """CSV output of HAProxy with two proxies."""
    return SAMPLE_STATS


@pytest.fixture
def stats_socket():
    """
    A UNIX socket which answers like HAProxy.

    Yields the socket path, the payload to send back and a list which
    receives the commands sent by the client.
    """
    directory = tempfile.mkdtemp(prefix='hc')
    path = os.path.join(directory, 'haproxy.sock')
    commands = []
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(path)
    server.listen(1)

    def serve():
        connection, _ = server.accept()
        with connection:
            data = b''
            while not data.endswith(b'\n'):
                chunk = connection.recv(1024)
                if not chunk:
                    break
                data += chunk
            commands.append(data.decode())
            connection.sendall(SAMPLE_STATS.encode())

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield path, SAMPLE_STATS, commands
    thread.join(timeout=5)
    server.close()
    shutil.rmtree(directory)
