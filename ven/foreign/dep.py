"""dep: Gopkg.lock (TOML)

    [[projects]]
      name = "github.com/pkg/errors"
      revision = "645ef00459ed84a119197bfb8d8205042c6df63d"
"""

from __future__ import annotations

import tomllib
from typing import Any

from ven.foreign import ForeignPackage, LockFileSource, entries


class DepSource(LockFileSource):
    name = "dep"
    lock_file = "Gopkg.lock"

    def loads(self, text: str) -> Any:
        return tomllib.loads(text)

    def collect(self, data: Any) -> list[ForeignPackage]:
        return entries(data, "projects", "name", "revision")
