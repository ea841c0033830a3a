from collections import OrderedDict
from threading import Lock
from typing import Callable, Union

from eth_hash.auto import keccak

from .abi import AbiCatalogue, parse_abi


class CatalogueCache:
    """
    In-memory LRU of parsed ABIs keyed by keccak of the ABI text.

    The key is the content itself, so an entry never goes stale; eviction is
    purely by size. A max_size of 0 disables caching.
    """

    def __init__(self, max_size: int = 0, parser: Callable[[str], AbiCatalogue] = parse_abi) -> None:
        self.max_size = max(0, int(max_size))
        self._parser = parser
        self._memory: "OrderedDict[bytes, AbiCatalogue]" = OrderedDict()
        self._lock = Lock()

    def _key(self, abi_text: Union[str, bytes]) -> bytes:
        data = abi_text.encode("utf-8") if isinstance(abi_text, str) else abi_text
        return keccak(data)

    def get(self, abi_text: Union[str, bytes]) -> AbiCatalogue:
        if self.max_size == 0:
            return self._parser(abi_text)

        key = self._key(abi_text)
        with self._lock:
            cached = self._memory.get(key)
            if cached is not None:
                self._memory.move_to_end(key)
                return cached

        catalogue = self._parser(abi_text)
        with self._lock:
            self._memory[key] = catalogue
            self._memory.move_to_end(key)
            while len(self._memory) > self.max_size:
                self._memory.popitem(last=False)
        return catalogue

    def __len__(self) -> int:
        return len(self._memory)
