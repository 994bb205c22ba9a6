"""
orderflow/services.py

Wiring of the persistence client and the engines.

build_services() is called once by create_app(); the result lives in
app.extensions["orderflow"] for the lifetime of the process. Blueprints fetch
it with get_services() instead of importing module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from .aggregation import AggregationEngine
from .credentials import Accounts
from .directory import Directory
from .store import EntryStore
from .workflow import WorkflowEngine

EXTENSION_KEY = "orderflow"


@dataclass
class Services:
    store: EntryStore
    workflow: WorkflowEngine
    aggregation: AggregationEngine
    directory: Directory
    accounts: Accounts


def build_services(session) -> Services:
    store = EntryStore(session)
    return Services(
        store=store,
        workflow=WorkflowEngine(store),
        aggregation=AggregationEngine(store),
        directory=Directory(store),
        accounts=Accounts(store),
    )


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
