from __future__ import annotations

import asyncio
import logging
import signal
from contextlib import contextmanager

import httpx

from sfind.clients.endpoint import SubstreamsEndpoint
from sfind.core.config import IndexerConfig
from sfind.orchestration.orchestrator import IndexerOrchestrator, RunOutput
from sfind.package import read_package
from sfind.processors.registry import ProcessorRegistry, make_default_registry
from sfind.storage.database import connect
from sfind.storage.migrations import run_migrations
from sfind.storage.progress import ProgressTracker

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# ---------------------------------------------------------------------------
# Setup helpers
# ---------------------------------------------------------------------------


def _load_package(config: IndexerConfig, registry: ProcessorRegistry) -> list[dict]:
    """Read the package and check the module is both declared and handled."""
    package = read_package(config.package_file)
    modules = package.request_modules(config.module_name)
    registry.get(config.module_name)
    logger.info("Loaded package %s (%d modules sent for %s)", config.package_file, len(modules), config.module_name)
    return modules


@contextmanager
def _shutdown_on_signals(orchestrator: IndexerOrchestrator):
    """Route SIGINT/SIGTERM to a cooperative shutdown for the duration of a run."""
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, orchestrator.request_shutdown)
        except (NotImplementedError, RuntimeError):
            continue
        installed.append(sig)
    try:
        yield
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def run_indexer(
    config: IndexerConfig,
    *,
    registry: ProcessorRegistry | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    handle_signals: bool = True,
) -> RunOutput:
    """
    Wire concrete implementations and run one pipeline to completion.

    Startup order: package + processor check, database, migrations, endpoint.
    Every resource opened here is closed here, on success or failure.
    """
    if registry is None:
        registry = make_default_registry()
    modules = _load_package(config, registry)

    con = connect(config.database_url)
    try:
        if config.skip_migrations:
            logger.info("Skipping migrations")
        else:
            run_migrations(con)

        endpoint = await SubstreamsEndpoint.connect(
            config.endpoint_url,
            config.api_token,
            timeout_s=config.timeout_s,
            transport=transport,
        )
        try:
            orchestrator = IndexerOrchestrator(
                tracker=ProgressTracker(con),
                endpoint=endpoint,
                registry=registry,
                pipeline_name=config.pipeline,
                module_name=config.module_name,
                modules=modules,
                window_size=config.window_size,
                resume_mode=config.resume_mode,
            )
            if not handle_signals:
                return await orchestrator.run()
            with _shutdown_on_signals(orchestrator):
                return await orchestrator.run()
        finally:
            await endpoint.aclose()
    finally:
        con.close()
