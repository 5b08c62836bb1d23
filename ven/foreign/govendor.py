"""govendor: vendor/vendor.json, package[].path / package[].revision"""

from __future__ import annotations

import json
from typing import Any

from ven.foreign import ForeignPackage, LockFileSource, entries


class GovendorSource(LockFileSource):
    name = "govendor"
    lock_file = "vendor/vendor.json"

    def loads(self, text: str) -> Any:
        return json.loads(text)

    def collect(self, data: Any) -> list[ForeignPackage]:
        return entries(data, "package", "path", "revision")
