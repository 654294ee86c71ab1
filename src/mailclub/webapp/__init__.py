"""MailClub web service package."""
from __future__ import annotations

from importlib import import_module
from types import ModuleType
from typing import Any, List

from . import persistence as _persistence

_IMPL_MODULE: ModuleType | None = None

persistence = _persistence
__all__: List[str] = list(getattr(_persistence, "__all__", ()))


def _load_impl() -> ModuleType:
    global _IMPL_MODULE
    if _IMPL_MODULE is not None:
        return _IMPL_MODULE
    module = import_module(".application", __name__)
    _IMPL_MODULE = module
    module_all = getattr(module, "__all__", ())
    __all__.extend(name for name in module_all if name not in __all__)
    return module


def __getattr__(name: str) -> Any:
    if hasattr(_persistence, name):
        return getattr(_persistence, name)
    module = _load_impl()
    return getattr(module, name)


def __dir__() -> List[str]:
    names = set(globals()) | set(__all__)
    return sorted(names | set(dir(_load_impl())))
