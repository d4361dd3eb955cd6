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

import functools
import logging

from . import config as doubles_config
from .dispatch import DispatchTable
from .exceptions import UnsupportedDispatch
from .logging import with_baggage_items

_MISSING = object()


class Placeholder:
    """A bare object with no behaviour of its own, used as the target of create()"""

    __slots__ = ()

    def __repr__(self):
        return "Placeholder()"


class MockWrapper:
    """
    Proxy giving any target stubbed methods and call counting.

    Attribute lookups are answered by the wrapper's own API first, then by the stub table, and are
    otherwise forwarded to the target, so the target keeps every capability it already had.
    """

    __slots__ = ("_target", "_stubs", "_watch_counts", "_baseline")

    _reserved = frozenset(("expects", "watch", "called_times", "invoke"))

    def __init__(self, target, baseline=None):
        if baseline is None:
            baseline = doubles_config.global_config.get("mock", {}).get("baseline", [])
        object.__setattr__(self, "_target", target)
        object.__setattr__(self, "_stubs", DispatchTable())
        object.__setattr__(self, "_watch_counts", {})
        object.__setattr__(self, "_baseline", frozenset(baseline))
        logging.debug("Augmented {} with mock capability".format(type(target).__name__))

    def expects(self, name, value):
        """Stub `name` to return `value` on every call, whatever the arguments."""
        if name in self._reserved:
            raise ValueError(f"'{name}' is part of the mock API and cannot be stubbed")
        replaced = name in self._stubs
        self._stubs.register(name, value)
        with with_baggage_items({"double": self._label()}):
            logging.debug("{} stub for '{}'".format("Replaced" if replaced else "Registered", name))

    def watch(self, name):
        if name not in self._watch_counts:
            self._watch_counts[name] = 0
            with with_baggage_items({"double": self._label()}):
                logging.debug(f"Watching '{name}'")

    def called_times(self, name):
        """Number of calls to `name` since it was watched, or None if it never was"""
        return self._watch_counts.get(name)

    def invoke(self, name, *args, **kwargs):
        """
        Call `name` on the double. A stub wins over a native method of the target.
        Watched names are counted before the stubbed value is returned or the native method runs.
        """
        stub = self._stubs.lookup(name, _MISSING)
        if stub is not _MISSING:
            self._count(name)
            return stub

        method = getattr(self._target, name, _MISSING)
        if method is _MISSING or not callable(method):
            raise UnsupportedDispatch(self._target, name)
        self._count(name)
        return method(*args, **kwargs)

    def _count(self, name):
        if name in self._watch_counts:
            self._watch_counts[name] += 1
        elif name in self._baseline:
            self._watch_counts[name] = 1
        else:
            return
        with with_baggage_items({"double": self._label()}):
            logging.debug(f"'{name}' called {self._watch_counts[name]} time(s)")

    def _intercepts(self, name):
        if name in self._stubs:
            return True
        if name in self._watch_counts or name in self._baseline:
            return callable(getattr(self._target, name, None))
        return False

    def _label(self):
        return f"MockWrapper({type(self._target).__name__})"

    def __getattr__(self, name):
        # only reached when normal lookup fails; slots may not be set yet during copy/unpickling
        if name.startswith("__") or name in MockWrapper.__slots__:
            raise AttributeError(name)
        if self._intercepts(name):
            return functools.partial(self.invoke, name)
        try:
            return getattr(self._target, name)
        except AttributeError:
            raise UnsupportedDispatch(self._target, name) from None

    def __setattr__(self, name, value):
        # copy and unpickling restore the wrapper's own slots through setattr
        if name in MockWrapper.__slots__:
            object.__setattr__(self, name, value)
            return
        setattr(self._target, name, value)

    @property
    def __wrapped__(self):
        return self._target

    def __repr__(self):
        return f"<MockWrapper of {self._target!r}>"


def augment(target, baseline=None):
    """Give `target` mock capability. Augmenting a MockWrapper returns it unchanged."""
    if isinstance(target, MockWrapper):
        return target
    return MockWrapper(target, baseline=baseline)


def create(baseline=None):
    return augment(Placeholder(), baseline=baseline)
