#
# Copyright 2022 European Centre for Medium-Range Weather Forecasts (ECMWF)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# In applying this licence, ECMWF does not waive the privileges and immunities
# granted to it by virtue of its status as an intergovernmental organisation nor
# does it submit to any jurisdiction.
#

from typing import Any, Dict, Iterator, List, Optional


class DispatchTable:
    """
    Mapping from an operation name to the entry consulted when that name is called on a target.

    Entries are opaque to the table: the mock stores return values, the tracking mixin stores
    TrackedField records. Names must be valid Python identifiers since they are reached via
    attribute access.
    """

    def __init__(self, entries: Optional[Dict[str, Any]] = None):
        self._entries: Dict[str, Any] = {}
        for name, entry in (entries or {}).items():
            self.register(name, entry)

    def register(self, name: str, entry: Any) -> None:
        if not isinstance(name, str):
            raise TypeError("Dispatch names must be strings, got {}".format(type(name).__name__))
        if not name.isidentifier():
            raise ValueError(f"'{name}' is not a valid attribute name")
        self._entries[name] = entry

    def lookup(self, name: str, default: Any = None) -> Any:
        return self._entries.get(name, default)

    def names(self) -> List[str]:
        return list(self._entries)

    def copy(self) -> "DispatchTable":
        return DispatchTable(self._entries)

    def __contains__(self, name) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self):
        return f"DispatchTable({self.names()})"
