"""godep: Godeps/Godeps.json, Deps[].ImportPath / Deps[].Rev"""

from __future__ import annotations

import json
from typing import Any

from ven.foreign import ForeignPackage, LockFileSource, entries


class GodepSource(LockFileSource):
    name = "godep"
    lock_file = "Godeps/Godeps.json"

    def loads(self, text: str) -> Any:
        return json.loads(text)

    def collect(self, data: Any) -> list[ForeignPackage]:
        return entries(data, "Deps", "ImportPath", "Rev")
