"""Shared fixtures: one grammar registry and host for the whole session."""

from __future__ import annotations

import pytest

from differ.editing.batch_patcher import BatchPatcher
from differ.editing.source_index import SourceIndex
from differ.editing.target_resolver import TargetResolver
from differ.grammar.host import GrammarHost
from differ.grammar.registry import default_registry


@pytest.fixture(scope="session")
def registry():
    return default_registry()


@pytest.fixture(scope="session")
def host(registry):
    return GrammarHost(registry)


@pytest.fixture(scope="session")
def source_index(host):
    return SourceIndex(host)


@pytest.fixture(scope="session")
def resolver():
    return TargetResolver()


@pytest.fixture(scope="session")
def patcher(source_index, resolver):
    return BatchPatcher(source_index, resolver)
