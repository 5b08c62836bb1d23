"""glide: glide.lock (YAML), imports[].name / imports[].version"""

from __future__ import annotations

from typing import Any

import yaml

from ven.foreign import ForeignPackage, LockFileSource, entries


class GlideSource(LockFileSource):
    name = "glide"
    lock_file = "glide.lock"

    def loads(self, text: str) -> Any:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(str(e)) from e

    def collect(self, data: Any) -> list[ForeignPackage]:
        return entries(data, "imports", "name", "version")
