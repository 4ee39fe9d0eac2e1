"""
Dependency injection for the API service.
Provides the control surface to route handlers.
"""
from __future__ import annotations

from scheduler.control import ControlSurface
from scheduler.runtime import Runtime

# Module-level singleton, initialized at startup
_runtime: Runtime | None = None


def init_dependencies(runtime: Runtime) -> None:
    """Initialize the module-level runtime. Called once at startup."""
    global _runtime
    _runtime = runtime


def reset_dependencies() -> None:
    global _runtime
    _runtime = None


def get_runtime() -> Runtime:
    if _runtime is None:
        raise RuntimeError("Runtime not initialized; call init_dependencies first")
    return _runtime


def get_control() -> ControlSurface:
    """FastAPI dependency: returns the shared ControlSurface."""
    return get_runtime().control
