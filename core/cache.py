"""Content-addressed TTL memo for generation and fix results."""

import hashlib
import threading
import time

from config.defaults import DEFAULTS

_KEY_SEPARATOR = "\x1f"


def make_key(*parts):
    """Stable SHA-256 key over the semantically distinguishing inputs."""
    digest = hashlib.sha256()
    digest.update(_KEY_SEPARATOR.join(str(p) for p in parts).encode("utf-8"))
    return digest.hexdigest()


def generation_key(prompt):
    return make_key("create", prompt)


def fix_key(error_text, paths):
    return make_key("fix", error_text, *sorted(paths))


class TTLCache:
    """In-process cache of FileTrees. Expired entries behave as absent."""

    def __init__(self, ttl=None, max_entries=None, clock=time.monotonic):
        self.ttl = DEFAULTS["cache_ttl"] if ttl is None else ttl
        self.max_entries = max_entries or DEFAULTS["cache_max_entries"]
        self._clock = clock
        self._entries = {}   # key -> (expires_at, tree)
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, tree = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return dict(tree)

    def put(self, key, tree, ttl=None):
        ttl = self.ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (self._clock() + ttl, dict(tree))
            if len(self._entries) > self.max_entries:
                self._sweep()

    def _sweep(self):
        """Drop expired entries, then the oldest ones while still over the limit. Called under _lock."""
        now = self._clock()
        for key in [k for k, (exp, _) in self._entries.items() if exp <= now]:
            del self._entries[key]
        if len(self._entries) > self.max_entries:
            by_expiry = sorted(self._entries.items(), key=lambda item: item[1][0])
            for key, _ in by_expiry[:len(self._entries) - self.max_entries]:
                del self._entries[key]

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)
