"""User-managed host whitelist."""

from collections.abc import Iterable
from typing import Optional

from ..storage.types import KeyValueStore, StorageError
from ..utils.logging import get_structured_logger
from .domains import hostname_of

logger = get_structured_logger(__name__)

WHITELIST_KEY = "whitelistedHosts"


def normalize_host(value: str) -> str:
    """Hostname for a bare host or a full URL, lowercased."""
    candidate = value.strip().lower()
    if "://" in candidate:
        return hostname_of(candidate) or ""
    return candidate.split("/", 1)[0].split(":", 1)[0]


class UserWhitelist:
    """Hosts the user trusts completely, persisted in the key-value store."""

    def __init__(self, store: KeyValueStore, seed: Iterable[str] = ()):
        self.store = store
        self._seed = {normalize_host(host) for host in seed if normalize_host(host)}
        self._hosts: Optional[set[str]] = None

    async def _load(self) -> set[str]:
        if self._hosts is None:
            try:
                stored = await self.store.get_value(WHITELIST_KEY)
            except StorageError as e:
                logger.error("Failed to load whitelist", error=str(e))
                return set(self._seed)
            self._hosts = set(stored or []) | self._seed
        return self._hosts

    async def _save(self, hosts: set[str]) -> None:
        await self.store.set_value(WHITELIST_KEY, sorted(hosts))

    async def contains(self, hostname: Optional[str]) -> bool:
        if not hostname:
            return False
        return hostname.lower() in await self._load()

    async def add(self, value: str) -> str:
        host = normalize_host(value)
        if not host:
            raise ValueError(f"Not a valid host: {value!r}")
        hosts = await self._load()
        hosts.add(host)
        await self._save(hosts)
        logger.info("Host whitelisted", host=host)
        return host

    async def remove(self, value: str) -> bool:
        host = normalize_host(value)
        hosts = await self._load()
        if host not in hosts:
            return False
        hosts.discard(host)
        await self._save(hosts)
        logger.info("Host removed from whitelist", host=host)
        return True

    async def list_hosts(self) -> list[str]:
        return sorted(await self._load())
