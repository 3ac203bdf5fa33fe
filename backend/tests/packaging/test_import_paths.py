"""Packaging sanity checks for import paths.

The backend uses implicit namespace packages; every layer must import the
same way under an installed package as in a local test run.
"""
from importlib import import_module

import pytest


@pytest.mark.parametrize(
    "module, attr",
    [
        ("backend.web.main", "create_app"),
        ("backend.attendance.services", "build_services"),
        ("backend.identity_access.provider", "SupabaseAuthClient"),
        ("backend.storage.kv", "InMemoryKeyValueStore"),
        ("backend.client.session", "Session"),
        ("backend.client.cli", "portal"),
    ],
)
def test_import_backend_layers(module, attr):
    mod = import_module(module)
    assert hasattr(mod, attr)
