# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Run-wide cache of loaded BPF objects.

Loading an object means verifying every program in it, which is slow and
also resets any map state. Tests that share an elf_file therefore share one
load, keyed by the resolved path. Entries live until the run ends; nothing
is ever evicted.

The cache is only touched from the control thread, before any parallel
phase starts, so it needs no locking. The worker threads only ever see
program handles, never the cache.
"""

from types import TracebackType
from typing import Optional

from bpfperf.bpf.interfaces import ModuleProvider, ProgramModule
from bpfperf.logging.logger import get_logger

logger = get_logger(__name__)


class ModuleCache:
    """
    Lazily loads objects through a provider and keeps them for the whole run.

    Usage:
        with ModuleCache(backend) as cache:
            module = cache.get("bpf/helpers.o")
        # every loaded object is closed when you leave the block
    """

    def __init__(self, provider: ModuleProvider) -> None:
        self._provider = provider
        self._modules: dict[str, ProgramModule] = {}

    def get(self, path: str, program_type: Optional[str] = None) -> ProgramModule:
        """
        Return the loaded object for `path`, loading it on first use.

        The program type only matters for the first load of a path: later
        tests reusing the same object get it as it was loaded.
        """
        module = self._modules.get(path)
        if module is not None:
            logger.debug("Module cache hit", extra={"path": path})
            return module

        module = self._provider.open_module(path, program_type)
        self._modules[path] = module
        logger.info(
            "Module loaded",
            extra={"path": path, "program_type": program_type or "default"},
        )
        return module

    def __contains__(self, path: object) -> bool:
        return path in self._modules

    def __len__(self) -> int:
        return len(self._modules)

    def close(self) -> None:
        """Close every cached object."""
        for path, module in self._modules.items():
            module.close()
            logger.debug("Module closed", extra={"path": path})
        self._modules.clear()

    def __enter__(self) -> "ModuleCache":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
