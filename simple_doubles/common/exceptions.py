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


class InvalidConfig(Exception):
    pass


class UnsupportedDispatch(AttributeError):
    """Raised when a name is neither registered on a double nor implemented by its target."""

    description = "does not support"

    def __init__(self, target, name):
        self.target_type = type(target).__name__
        super().__init__(f"'{self.target_type}' object {self.description} '{name}'")
        # AttributeError.__init__ resets .name
        self.name = name

    def __repr__(self):
        return f"{self.__class__.__name__}: {self}"


class UnsupportedQuery(UnsupportedDispatch):
    description = "has no such query"


class MalformedConstruction(TypeError):
    def __init__(self, cls, value):
        self.cls = cls
        super().__init__(
            "{} must be constructed from a mapping of field values, got {}".format(cls.__name__, type(value).__name__)
        )
