from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal

Strategy = Literal["bypass", "network_first", "stale_while_revalidate"]

CACHE_PREFIX = "kentra-"
OFFLINE_PAGE = "/offline.html"


@dataclass(frozen=True)
class ShellCachePolicy:
    """
    Caching rules for the installable app shell (service worker).

    - static cache: precached on install
    - dynamic cache: filled at runtime
    - API, auth, analytics and function calls are never cached
    """

    version: str = "v1.0.0"
    precache: tuple[str, ...] = (
        "/",
        OFFLINE_PAGE,
        "/icons/icon-192x192.png",
        "/icons/icon-512x512.png",
    )
    no_cache_patterns: tuple[str, ...] = (
        r"supabase",
        r"googleapis",
        r"google-analytics",
        r"googletagmanager",
        r"/api/",
        r"/functions/",
        r"/auth/",
    )
    _compiled: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_compiled", tuple(re.compile(p) for p in self.no_cache_patterns)
        )

    @property
    def static_cache(self) -> str:
        return f"{CACHE_PREFIX}{self.version}-static"

    @property
    def dynamic_cache(self) -> str:
        return f"{CACHE_PREFIX}{self.version}-dynamic"

    def is_excluded(self, url: str) -> bool:
        return any(p.search(url) for p in self._compiled)

    def strategy_for(self, method: str, url: str, mode: str = "cors") -> Strategy:
        if method.upper() != "GET" or self.is_excluded(url):
            return "bypass"
        if mode == "navigate":
            # Fresh HTML when online; offline page when not.
            return "network_first"
        return "stale_while_revalidate"

    def stale_caches(self, existing: list[str]) -> list[str]:
        """
        Caches to delete on activate: ours, but from an older version.
        """
        keep = {self.static_cache, self.dynamic_cache}
        return [k for k in existing if k.startswith(CACHE_PREFIX) and k not in keep]
