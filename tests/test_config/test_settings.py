"""Test Settings defaults, validation and env parsing."""

import json

import pytest
from pydantic import ValidationError

from pool_watcher.config.settings import DEFAULT_PROGRAMS, Settings
from pool_watcher.models.pool import ProgramKind
from pool_watcher.watcher.resync import MIN_RESYNC_INTERVAL_SEC


def test_defaults_watch_all_supported_programs():
    s = Settings(_env_file=None)
    assert s.programs == DEFAULT_PROGRAMS
    assert {p.kind for p in s.programs} == set(ProgramKind)
    assert s.ws_url == "wss://api.mainnet-beta.solana.com"


def test_ws_url_derived_from_http_rpc():
    s = Settings(_env_file=None, rpc_url="http://localhost:8899")
    assert s.ws_url == "ws://localhost:8899"


def test_explicit_ws_url_kept():
    s = Settings(_env_file=None, rpc_url="https://rpc.example", ws_url="wss://ws.example")
    assert s.ws_url == "wss://ws.example"


def test_resync_interval_is_floored():
    assert Settings(_env_file=None, resync_interval_sec=10).resync_interval_sec == MIN_RESYNC_INTERVAL_SEC
    assert Settings(_env_file=None, resync_interval_sec=900).resync_interval_sec == 900


def test_bus_capacity_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, bus_capacity=0)


def test_programs_from_env(monkeypatch):
    monkeypatch.setenv(
        "POOL_WATCHER_PROGRAMS",
        json.dumps([{"kind": "raydium_cpmm", "program_id": "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C"}]),
    )
    monkeypatch.setenv("POOL_WATCHER_BUS_CAPACITY", "8")

    s = Settings(_env_file=None)

    assert len(s.programs) == 1
    assert s.programs[0].kind == ProgramKind.RAYDIUM_CPMM
    assert s.bus_capacity == 8


def test_unknown_program_kind_rejected(monkeypatch):
    monkeypatch.setenv("POOL_WATCHER_PROGRAMS", json.dumps([{"kind": "pumpfun", "program_id": "x"}]))
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
