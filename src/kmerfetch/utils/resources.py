"""
Shared thread pool, optional dependencies and external binary lookup.
"""
from concurrent.futures import ThreadPoolExecutor
from functools import cached_property, lru_cache
from importlib import import_module
from pathlib import Path
from shutil import which
from typing import Callable, Optional
import atexit
import os


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """Process-wide resources, created lazily and released at exit."""
    def __init__(self):
        atexit.register(self._shutdown)

    @cached_property
    def pool(self) -> ThreadPoolExecutor:
        """Thread pool shared by every `TaskGroup`."""
        return ThreadPoolExecutor(min(32, (os.cpu_count() or 1) + 4), thread_name_prefix='kmerfetch')

    def _shutdown(self):
        if 'pool' in self.__dict__: self.pool.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        try: import_module(module_name)
        except ImportError: return False
        return True

    @staticmethod
    def find_binary(program_name: str) -> Optional[Path]:
        """
        Locates an executable on PATH, honouring a ``KMERFETCH_<NAME>`` environment override.

        Examples:
            >>> RESOURCES.find_binary('beetl-search')  # or KMERFETCH_BEETL_SEARCH=/opt/bin/beetl-search
        """
        override = os.environ.get('KMERFETCH_' + program_name.upper().replace('-', '_'))
        return Path(found) if (found := which(override or program_name)) else None


# Decorators -----------------------------------------------------------------------------------------------------------
def jit(signature_or_function=None, **options) -> Callable:
    """
    Applies `numba.jit` when numba is installed and returns the function unchanged otherwise.

    Examples:
        >>> @jit(nopython=True, cache=True)
        ... def kernel(a): ...
    """
    if not RESOURCES.has_module('numba'):
        if callable(signature_or_function): return signature_or_function
        return lambda func: func
    from numba import jit as numba_jit
    if callable(signature_or_function): return numba_jit(signature_or_function)
    return numba_jit(signature_or_function, **options)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
