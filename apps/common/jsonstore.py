# apps/common/jsonstore.py
#
# Flat-file JSON store shared by the services.
#
# CONTRACT:
#   - one JSON document per store, at a fixed path
#   - load() always reads the whole document
#   - save() always rewrites the whole document (no append, no partial write)
#   - a missing / unreadable / non-JSON file loads as the default value
#
# There is NO locking here. Callers doing load → modify → save can race and
# the last full snapshot written wins. Wrap the cycle yourself if that matters.

from __future__ import annotations

import contextlib
import copy
import json
import logging
import os
import tempfile
from typing import Any

log = logging.getLogger("feedsmith.store")


class JsonFileStore:
    def __init__(self, path: str, default: Any):
        self.path = path
        self._default = default

    def default(self) -> Any:
        # deep copy so callers can mutate what load() hands back
        return copy.deepcopy(self._default)

    def load(self) -> Any:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return self.default()
        except (OSError, ValueError) as e:
            log.warning("[store] unreadable %s (%s); treating as empty", self.path, type(e).__name__)
            return self.default()

    def save(self, data: Any) -> None:
        # write-then-rename: a reader sees either the old or the new snapshot
        parent = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(parent, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=parent, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise

    def reset(self) -> None:
        """Wipe the store back to its default value."""
        self.save(self.default())

    def ensure(self) -> None:
        """Create the backing file if it does not exist yet. Never overwrites."""
        if not os.path.exists(self.path):
            self.save(self.default())
