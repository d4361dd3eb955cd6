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

import pytest

import simple_doubles.common.config as doubles_config
from simple_doubles import MockWrapper, Placeholder, UnsupportedDispatch, augment, create


class Greeter:
    def __init__(self):
        self.mood = "cheerful"

    def greet(self, who="world"):
        return f"native {who}"

    def shout(self):
        return self.greet().upper()


class TestCreate:
    def setup_method(self, method):
        self.m = create()

    def test_create_wraps_a_placeholder(self):
        assert isinstance(self.m, MockWrapper)
        assert isinstance(self.m.__wrapped__, Placeholder)

    def test_scenario_stub_and_count(self):
        self.m.expects("greet", "hi")
        self.m.watch("greet")
        assert self.m.greet() == "hi"
        assert self.m.greet() == "hi"
        assert self.m.called_times("greet") == 2

    def test_stub_ignores_arguments(self):
        self.m.expects("imitated_method", True)
        assert self.m.imitated_method() is True
        assert self.m.imitated_method(1, 2, key="value") is True

    @pytest.mark.parametrize("k", [0, 1, 5])
    def test_called_times_matches_calls(self, k):
        self.m.expects("fetch", [1, 2])
        self.m.watch("fetch")
        for _ in range(k):
            assert self.m.fetch() == [1, 2]
        assert self.m.called_times("fetch") == k

    def test_stub_returns_the_same_object(self):
        value = {"a": 1}
        self.m.expects("config", value)
        assert self.m.config() is value

    def test_reregistering_replaces_value_and_keeps_count(self):
        self.m.expects("greet", "v1")
        self.m.watch("greet")
        self.m.greet()
        self.m.expects("greet", "v2")
        assert self.m.called_times("greet") == 1
        assert self.m.greet() == "v2"
        assert self.m.called_times("greet") == 2

    def test_watch_is_idempotent(self):
        self.m.expects("greet", "hi")
        self.m.watch("greet")
        self.m.greet()
        self.m.watch("greet")
        assert self.m.called_times("greet") == 1

    def test_watch_before_expects(self):
        self.m.watch("greet")
        self.m.expects("greet", "hi")
        self.m.greet()
        assert self.m.called_times("greet") == 1

    def test_called_times_of_unwatched_name(self):
        assert self.m.called_times("greet") is None
        self.m.expects("greet", "hi")
        self.m.greet()
        # stubbed but never watched: nothing is counted
        assert self.m.called_times("greet") is None

    def test_watched_but_never_called(self):
        self.m.watch("greet")
        assert self.m.called_times("greet") == 0

    def test_unknown_method_is_not_supported(self):
        with pytest.raises(UnsupportedDispatch) as exc:
            self.m.unknown()
        assert exc.value.name == "unknown"
        assert exc.value.target_type == "Placeholder"

    def test_unsupported_dispatch_is_an_attribute_error(self):
        with pytest.raises(AttributeError):
            self.m.unknown
        assert not hasattr(self.m, "unknown")
        assert getattr(self.m, "unknown", "default") == "default"

    def test_watched_unknown_method_is_not_supported(self):
        self.m.watch("unknown")
        with pytest.raises(UnsupportedDispatch):
            self.m.unknown()
        assert self.m.called_times("unknown") == 0

    def test_invoke(self):
        self.m.expects("greet", "hi")
        self.m.watch("greet")
        assert self.m.invoke("greet", "ignored") == "hi"
        assert self.m.called_times("greet") == 1
        with pytest.raises(UnsupportedDispatch):
            self.m.invoke("unknown")

    def test_cannot_stub_mock_api(self):
        for name in ("expects", "watch", "called_times", "invoke"):
            with pytest.raises(ValueError):
                self.m.expects(name, None)

    def test_stub_names_must_be_attribute_names(self):
        with pytest.raises(ValueError):
            self.m.expects("not a name", None)

    def test_doubles_are_independent(self):
        other = create()
        self.m.expects("greet", "hi")
        self.m.watch("greet")
        self.m.greet()
        assert not hasattr(other, "greet")
        assert other.called_times("greet") is None

    def test_copy_keeps_stubs_and_target(self):
        self.m.expects("greet", "hi")
        self.m.watch("greet")
        clone = copy.copy(self.m)
        assert isinstance(clone, MockWrapper)
        assert clone.__wrapped__ is self.m.__wrapped__
        assert clone.greet() == "hi"
        assert clone.called_times("greet") == 1

    def test_repr(self):
        assert repr(self.m) == "<MockWrapper of Placeholder()>"


class TestAugment:
    def setup_method(self, method):
        self.target = Greeter()
        self.m = augment(self.target)

    def test_native_method_preserved(self):
        assert self.m.greet() == "native world"
        assert self.m.greet("Ann") == "native Ann"
        assert self.m.shout() == "NATIVE WORLD"

    def test_native_attributes_preserved(self):
        assert self.m.mood == "cheerful"

    def test_attribute_writes_reach_target(self):
        self.m.mood = "grumpy"
        assert self.target.mood == "grumpy"
        assert self.m.mood == "grumpy"

    def test_stub_overrides_native_method(self):
        self.m.expects("greet", "stubbed")
        assert self.m.greet("Ann") == "stubbed"
        # the target itself is untouched
        assert self.target.greet() == "native world"

    def test_watch_native_method_counts_and_delegates(self):
        self.m.watch("greet")
        assert self.m.greet("Ann") == "native Ann"
        assert self.m.greet() == "native world"
        assert self.m.called_times("greet") == 2

    def test_native_calls_from_inside_target_are_not_seen(self):
        self.m.watch("greet")
        self.m.shout()
        assert self.m.called_times("greet") == 0

    def test_watching_a_plain_attribute_returns_it(self):
        self.m.watch("mood")
        assert self.m.mood == "cheerful"
        with pytest.raises(UnsupportedDispatch):
            self.m.invoke("mood")

    def test_augment_returns_existing_wrapper(self):
        assert augment(self.m) is self.m

    def test_unknown_method_reports_target_type(self):
        with pytest.raises(UnsupportedDispatch) as exc:
            self.m.wave()
        assert "'Greeter' object does not support 'wave'" in str(exc.value)


class TestBaseline:
    def test_baseline_counts_without_watch(self):
        m = augment(Greeter(), baseline=["greet"])
        assert m.called_times("greet") is None
        assert m.greet() == "native world"
        assert m.called_times("greet") == 1
        m.greet()
        assert m.called_times("greet") == 2

    def test_baseline_from_config(self, monkeypatch):
        monkeypatch.setattr(doubles_config, "global_config", {"mock": {"baseline": ["greet"]}})
        m = augment(Greeter())
        m.greet()
        assert m.called_times("greet") == 1

    def test_no_baseline_by_default(self):
        m = augment(Greeter())
        m.greet()
        assert m.called_times("greet") is None

    def test_baseline_with_stub(self):
        m = create(baseline=["ping"])
        m.expects("ping", "pong")
        assert m.ping() == "pong"
        assert m.called_times("ping") == 1

    def test_baseline_name_missing_on_target(self):
        m = create(baseline=["ping"])
        with pytest.raises(UnsupportedDispatch):
            m.ping()
        assert m.called_times("ping") is None
