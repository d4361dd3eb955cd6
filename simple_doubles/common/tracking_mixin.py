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

import copy
import functools
import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Set, Tuple

from . import config as doubles_config
from .dispatch import DispatchTable
from .exceptions import MalformedConstruction, UnsupportedDispatch, UnsupportedQuery
from .logging import with_baggage_items

CHANGED_SUFFIX = "_changed"
BOOLEAN_PREFIX = "is_"

_SNAPSHOT_POLICIES = {
    "reference": lambda value: value,
    "copy": copy.copy,
    "deepcopy": copy.deepcopy,
}


class TrackedField:
    """The operations generated for one declared field, shared by every instance of the class"""

    __slots__ = ["name", "kind", "reader", "writer", "changed", "query"]

    def __init__(
        self,
        name: str,
        kind: Optional[type],
        reader: Callable,
        writer: Callable,
        changed: Callable,
        query: Optional[Callable] = None,
    ):
        self.name = name
        self.kind = kind
        self.reader = reader
        self.writer = writer
        self.changed = changed
        self.query = query

    def __repr__(self):
        return "TrackedField({}{})".format(self.name, f": {self.kind.__name__}" if self.kind else "")


def build_field(name: str, kind: Optional[type] = None) -> TrackedField:
    def reader(instance):
        return instance._values.get(name)

    def writer(instance, value):
        instance._values[name] = value
        instance._dirty_flags[name] = True
        instance._dirty = True

    def changed(instance):
        return instance._dirty_flags.get(name, False)

    query = None
    # the boolean query is decided once, from the declared type, never per assignment
    if kind is bool:

        def query(instance):
            return bool(instance._values.get(name))

    return TrackedField(name, kind, reader, writer, changed, query)


class TrackedAttribute:
    """Data descriptor routing `obj.field` and `obj.field = value` through the class's field table"""

    def __init__(self, name):
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return self._field(instance).reader(instance)

    def __set__(self, instance, value):
        self._field(instance).writer(instance, value)

    def _field(self, instance):
        field = type(instance)._tracked_fields.lookup(self.name)
        if field is None:
            # declared on a parent after this subclass copied its table
            raise UnsupportedDispatch(instance, self.name)
        return field

    def __repr__(self):
        return f"TrackedAttribute({self.name!r})"


class ChangeTrackingMixin:
    """
    Turns declared fields into attributes whose writes are recorded as dirty.

    Fields are declared once per class, either with `tracked_fields = ("name", "age")` in the class body
    or by calling `declare_tracked_fields`. Instances are built from a mapping of initial values, which
    is kept as the snapshot `restore()` returns to.

        class Person(ChangeTrackingMixin):
            tracked_fields = ("name", "age")

        p = Person({"name": "Ann", "age": 30})
        p.name = "Bea"
        p.name_changed()  # True
        p.restore()       # p.name == "Ann"
    """

    __slots__ = ("_values", "_initial_values", "_dirty_flags", "_dirty", "_snapshot")

    _tracked_fields = DispatchTable()
    # set on a class by its first instance; the field table is read-only from then on
    _instantiated = False
    tracked_fields: Tuple[str, ...] = ()

    _api = frozenset(
        (
            "changed",
            "restore",
            "field_changed",
            "get_dirty_fields",
            "changes",
            "declare_tracked_fields",
            "tracked_fields",
        )
    )

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        # each class owns its table so declarations never leak into a parent
        cls._tracked_fields = cls._tracked_fields.copy()
        declared = cls.__dict__.get("tracked_fields", ())
        if isinstance(declared, str):
            declared = (declared,)
        if declared:
            cls.declare_tracked_fields(*declared)

    @classmethod
    def declare_tracked_fields(cls, *names: str, **typed: type) -> None:
        """
        Declare tracked fields. Positional names are untyped; keyword arguments map a name to its type,
        and fields declared as `bool` also get an `is_<name>()` query. Re-declaring a name is allowed.
        """
        if cls is ChangeTrackingMixin:
            raise TypeError("Tracked fields must be declared on a subclass of ChangeTrackingMixin")
        if cls.__dict__.get("_instantiated", False):
            raise TypeError(f"Tracked fields of {cls.__name__} cannot change once it has been instantiated")

        fields = [(name, None) for name in names] + list(typed.items())
        for name, _ in fields:
            if isinstance(name, str) and (name.startswith("_") or name in cls._api):
                raise ValueError(f"'{name}' is private or clashes with the change tracking API")
        for name, kind in fields:
            cls._tracked_fields.register(name, build_field(name, kind))
            setattr(cls, name, TrackedAttribute(name))

        logging.debug(
            "Declared tracked fields on {}: {}".format(cls.__name__, [name for name, _ in fields]),
            extra={"tracked_fields": cls._tracked_fields.names()},
        )

    def __init__(self, initial_values: Optional[Mapping] = None, **kwargs):
        if initial_values is None:
            initial_values = {}
        if not isinstance(initial_values, Mapping):
            raise MalformedConstruction(type(self), initial_values)

        cls = type(self)
        if not cls.__dict__.get("_instantiated", False):
            cls._instantiated = True

        fields = cls._tracked_fields
        supplied = {**initial_values, **kwargs}
        ignored = [k for k in supplied if k not in fields]
        if ignored:
            logging.debug("Ignoring undeclared fields for {}: {}".format(type(self).__name__, ignored))

        policy = doubles_config.global_config.get("tracking", {}).get("snapshot", "reference")
        snapshot = _SNAPSHOT_POLICIES[policy]
        values = {name: supplied.get(name) for name in fields}

        # untracked assignment path: nothing here marks a field dirty
        object.__setattr__(self, "_snapshot", snapshot)
        object.__setattr__(self, "_values", values)
        object.__setattr__(self, "_initial_values", {name: snapshot(value) for name, value in values.items()})
        object.__setattr__(self, "_dirty_flags", {name: False for name in fields})
        object.__setattr__(self, "_dirty", False)

    def changed(self) -> bool:
        return self._dirty

    def field_changed(self, name: str) -> bool:
        field = type(self)._tracked_fields.lookup(name)
        if field is None:
            raise UnsupportedQuery(self, name + CHANGED_SUFFIX)
        return field.changed(self)

    def get_dirty_fields(self) -> Set[str]:
        return {name for name, dirty in self._dirty_flags.items() if dirty}

    def changes(self) -> Dict[str, Tuple[Any, Any]]:
        """Map each dirty field to its (initial, current) values"""
        return {
            name: (self._initial_values.get(name), self._values.get(name)) for name in sorted(self.get_dirty_fields())
        }

    def restore(self) -> None:
        """Discard every tracked write, putting all fields back to their construction-time values"""
        dirty = self.get_dirty_fields()
        for name, value in self._initial_values.items():
            self._values[name] = self._snapshot(value)
        for name in self._dirty_flags:
            self._dirty_flags[name] = False
        self._dirty = False

        if dirty:
            with with_baggage_items({"double": type(self).__name__}):
                logging.debug("Restored fields {}".format(sorted(dirty)))

    def __getattr__(self, name):
        # only reached when normal lookup fails; slots may not be set yet during copy/unpickling
        if name.startswith("__") or name in ChangeTrackingMixin.__slots__:
            raise AttributeError(name)

        fields = type(self)._tracked_fields
        if name.endswith(CHANGED_SUFFIX):
            field = fields.lookup(name[: -len(CHANGED_SUFFIX)])
            if field is None:
                raise UnsupportedQuery(self, name)
            return functools.partial(field.changed, self)
        if name.startswith(BOOLEAN_PREFIX):
            field = fields.lookup(name[len(BOOLEAN_PREFIX) :])
            if field is not None:
                if field.query is None:
                    raise UnsupportedQuery(self, name)
                return functools.partial(field.query, self)
        raise UnsupportedDispatch(self, name)
