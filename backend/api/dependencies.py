"""
Dependency injection for the API service.
Provides the engines, job registry and database manager to route handlers.
"""
from __future__ import annotations

from typing import Optional

from shared.utils.database import DatabaseManager

from grading.engine import GradingEngine
from ingest.reconciliation import ReconciliationEngine
from scheduler.engine.job_state import JobRegistry

# Module-level singletons, initialized at startup
_reconciliation: ReconciliationEngine | None = None
_grading: GradingEngine | None = None
_registry: JobRegistry | None = None
_db: DatabaseManager | None = None


def init_dependencies(
    reconciliation: ReconciliationEngine,
    grading: GradingEngine,
    registry: JobRegistry,
    db: Optional[DatabaseManager] = None,
) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _reconciliation, _grading, _registry, _db
    _reconciliation = reconciliation
    _grading = grading
    _registry = registry
    _db = db


def get_reconciliation() -> ReconciliationEngine:
    if _reconciliation is None:
        raise RuntimeError("ReconciliationEngine not initialized, call init_dependencies first")
    return _reconciliation


def get_grading() -> GradingEngine:
    if _grading is None:
        raise RuntimeError("GradingEngine not initialized, call init_dependencies first")
    return _grading


def get_registry() -> JobRegistry:
    if _registry is None:
        raise RuntimeError("JobRegistry not initialized, call init_dependencies first")
    return _registry


def get_db() -> Optional[DatabaseManager]:
    """The shared DatabaseManager, or None when no store is configured."""
    return _db
