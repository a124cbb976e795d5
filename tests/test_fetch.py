"""Tests for fetching statistics from HAProxy."""

import pytest
import requests

from haproxycheck import fetch as fetch_module
from haproxycheck.fetch import fetch, fetch_socket, get_stats, stats_path
from haproxycheck.utils import FetchError


class FakeResponse:
    """A minimal requests.Response."""

    def __init__(self, status_code=200, text=''):
        self.status_code = status_code
        self.text = text
        self.content = text.encode()


@pytest.fixture
def fake_get(monkeypatch, sample_stats):
    """Replace requests.get and record its calls."""
    calls = []
    responses = {'response': FakeResponse(200, sample_stats)}

    def _get(url, **kwargs):
        calls.append((url, kwargs))
        response = responses['response']
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(fetch_module.requests, 'get', _get)
    return calls, responses


class TestStatsPath:

    def test_leading_slash_is_added(self):
        assert stats_path('haproxy') == '/haproxy'

    def test_path_is_kept(self):
        assert stats_path('/') == '/'
        assert stats_path('/stats') == '/stats'


class TestFetchSocket:
    """Tests for the UNIX socket transport."""

    def test_sends_show_stat(self, stats_socket):
        """The command is terminated by a newline."""
        path, payload, commands = stats_socket

        assert fetch_socket(path, timeout=5) == payload
        assert commands == ['show stat\n']

    def test_fetch_picks_socket(self, stats_socket):
        path, payload, _ = stats_socket

        assert fetch(path, timeout=5) == payload

    def test_get_stats_parses_payload(self, stats_socket):
        path, _, _ = stats_socket
        rows = get_stats(path, timeout=5)

        assert len(rows) == 10
        assert rows[1].svname == 'web01'

    def test_refused_connection(self, tmp_path):
        with pytest.raises(FetchError, match='Failed to fetch from'):
            fetch_socket(str(tmp_path / 'missing.sock'), timeout=1)

    def test_path_which_is_not_a_socket(self, tmp_path):
        """A path is never mistaken for a hostname."""
        path = tmp_path / 'haproxy.sock'
        path.write_text('')

        with pytest.raises(FetchError, match='is not a UNIX socket'):
            fetch(str(path))


class TestFetchHttp:
    """Tests for the HTTP transport."""

    def test_url(self, fake_get, sample_stats):
        calls, _ = fake_get

        assert fetch('lb1.example.com', port=8080, path='/stats') \
            == sample_stats
        url, kwargs = calls[0]
        assert url == 'http://lb1.example.com:8080/stats;csv;norefresh'
        assert kwargs['auth'] is None
        assert kwargs['allow_redirects'] is False

    def test_default_path(self, fake_get):
        calls, _ = fake_get
        fetch('lb1.example.com')

        assert calls[0][0] == 'http://lb1.example.com:80/;csv;norefresh'

    def test_ipv6_literal(self, fake_get):
        calls, _ = fake_get
        fetch('::1', port=8080)

        assert calls[0][0] == 'http://[::1]:8080/;csv;norefresh'

    def test_ssl(self, fake_get):
        calls, _ = fake_get
        fetch('lb1.example.com', port=443, use_ssl=True)

        assert calls[0][0].startswith('https://lb1.example.com:443/')

    def test_basic_auth(self, fake_get):
        calls, _ = fake_get
        fetch('lb1.example.com', username='admin', password='secret')

        auth = calls[0][1]['auth']
        assert auth.username == 'admin'
        assert auth.password == 'secret'

    def test_basic_auth_without_password(self, fake_get):
        calls, _ = fake_get
        fetch('lb1.example.com', username='admin')

        assert calls[0][1]['auth'].password == ''

    def test_timeout(self, fake_get):
        calls, _ = fake_get
        fetch('lb1.example.com', timeout=3.5)

        assert calls[0][1]['timeout'] == 3.5

    def test_status_not_200(self, fake_get):
        _, responses = fake_get
        responses['response'] = FakeResponse(401, 'unauthorized')

        with pytest.raises(FetchError) as exc_info:
            fetch('lb1.example.com', port=8080, path='/stats')
        assert str(exc_info.value) == \
            'Failed to fetch from lb1.example.com:8080/stats: 401'

    def test_redirect_is_not_followed(self, fake_get):
        _, responses = fake_get
        responses['response'] = FakeResponse(301, '')

        with pytest.raises(FetchError, match=': 301$'):
            fetch('lb1.example.com')

    def test_connection_error(self, fake_get):
        _, responses = fake_get
        responses['response'] = requests.exceptions.ConnectionError('refused')

        with pytest.raises(FetchError, match='lb1.example.com:80/'):
            fetch('lb1.example.com')
