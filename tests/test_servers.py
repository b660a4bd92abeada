import pytest

from confbench.errors import ConfigurationError
from confbench.servers import select_server, split_server_uris

SERVERS = ("consul://a:8500", "consul://b:8500")


def test_single_server_is_always_selected(logger):
    assert select_server(["consul://only:8500"], logger, pid=12345) == "consul://only:8500"


def test_selection_is_pid_modulo_server_count(logger):
    assert select_server(SERVERS, logger, pid=4) == select_server(SERVERS, logger, pid=6)
    assert select_server(SERVERS, logger, pid=5) != select_server(SERVERS, logger, pid=4)
    assert select_server(SERVERS, logger, pid=5) == "consul://b:8500"


def test_selection_defaults_to_current_pid(monkeypatch, logger):
    monkeypatch.setattr("confbench.servers.os.getpid", lambda: 7)
    assert select_server(SERVERS, logger) == "consul://b:8500"


def test_empty_server_list_is_rejected(logger):
    with pytest.raises(ConfigurationError):
        select_server([], logger)


def test_split_server_uris_drops_blanks():
    assert split_server_uris("consul://a:8500,, consul://b:8500 ,") == SERVERS
