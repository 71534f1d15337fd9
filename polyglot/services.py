"""
Service wiring — Build the host, store, audit sink, and mirror services once.

Both the CLI and the admin server go through ``build_services`` so they
share one configuration path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config.loader import Settings
from .host.base import LibraryHost
from .host.registry import create_host
from .mirror.lifecycle import MirrorService
from .mirror.orphans import OrphanReconciler
from .persistence.audit import AuditSink, AuditWriter
from .persistence.config_store import ConfigStore, JsonConfigStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    host: LibraryHost
    store: ConfigStore
    sink: AuditSink
    mirrors: MirrorService
    orphans: OrphanReconciler


def build_services(settings: Settings) -> Services:
    host = create_host(settings)
    store = JsonConfigStore(settings.config_file)
    sink = AuditWriter(settings.audit_file)
    logger.debug(f"Services ready (config={settings.config_file}, audit={settings.audit_file})")
    return Services(
        host=host,
        store=store,
        sink=sink,
        mirrors=MirrorService(host, store, sink=sink),
        orphans=OrphanReconciler(host, store, sink=sink),
    )
