from __future__ import annotations

import json
from string import Template

from offline.policy import CACHE_PREFIX, OFFLINE_PAGE, ShellCachePolicy

_SW_TEMPLATE = Template(
    """const STATIC_CACHE = $static_cache;
const DYNAMIC_CACHE = $dynamic_cache;
const CACHE_PREFIX = $cache_prefix;
const OFFLINE_PAGE = $offline_page;
const PRECACHE_ASSETS = $precache;
const NO_CACHE_PATTERNS = $patterns.map((p) => new RegExp(p));

self.addEventListener('install', (event) => {
  event.waitUntil(
    caches.open(STATIC_CACHE)
      .then((cache) => cache.addAll(PRECACHE_ASSETS))
      .then(() => self.skipWaiting())
  );
});

self.addEventListener('activate', (event) => {
  event.waitUntil(
    caches.keys()
      .then((keys) => Promise.all(
        keys.filter((k) => k.startsWith(CACHE_PREFIX) && k !== STATIC_CACHE && k !== DYNAMIC_CACHE)
            .map((k) => caches.delete(k))
      ))
      .then(() => self.clients.claim())
  );
});

self.addEventListener('fetch', (event) => {
  const { request } = event;
  if (request.method !== 'GET') return;
  if (NO_CACHE_PATTERNS.some((p) => p.test(request.url))) return;

  if (request.mode === 'navigate') {
    event.respondWith(
      fetch(request)
        .then((response) => {
          const clone = response.clone();
          caches.open(DYNAMIC_CACHE).then((cache) => cache.put(request, clone));
          return response;
        })
        .catch(() => caches.match(OFFLINE_PAGE))
    );
    return;
  }

  event.respondWith(
    caches.match(request).then((cached) => {
      const fetched = fetch(request).then((response) => {
        if (response.ok) {
          const clone = response.clone();
          caches.open(DYNAMIC_CACHE).then((cache) => cache.put(request, clone));
        }
        return response;
      });
      return cached || fetched;
    })
  );
});

self.addEventListener('message', (event) => {
  if (event.data && event.data.type === 'SKIP_WAITING') {
    self.skipWaiting();
  }
});
"""
)

OFFLINE_HTML = """<!doctype html>
<html lang="es">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Kentra - Sin conexión</title>
</head>
<body>
  <main style="font-family: sans-serif; text-align: center; padding: 4rem 1rem;">
    <h1>Sin conexión</h1>
    <p>Revisa tu conexión a internet e inténtalo de nuevo.</p>
    <button onclick="location.reload()">Reintentar</button>
  </main>
</body>
</html>
"""


def render_service_worker(policy: ShellCachePolicy | None = None) -> str:
    p = policy or ShellCachePolicy()
    return _SW_TEMPLATE.substitute(
        static_cache=json.dumps(p.static_cache),
        dynamic_cache=json.dumps(p.dynamic_cache),
        cache_prefix=json.dumps(CACHE_PREFIX),
        offline_page=json.dumps(OFFLINE_PAGE),
        precache=json.dumps(list(p.precache)),
        patterns=json.dumps(list(p.no_cache_patterns)),
    )
