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

import contextlib
import json
import logging

from opentelemetry import baggage
from opentelemetry.context import attach, detach, get_current
from pythonjsonlogger.json import JsonFormatter

DEFAULT_LOGGING_MODE = "json"
DEFAULT_LOGGING_LEVEL = "INFO"
DEFAULT_PRIMARY_FIELDS = ["asctime", "double", "message"]
DEFAULT_DEFAULTS = {"app": "simple-doubles"}
DEFAULT_IGNORED_FIELDS = [
    "args",
    "msg",
    "msecs",
    "relativeCreated",
    "process",
]


def setup(config, source_name):
    logger = logging.getLogger()
    logger.name = source_name

    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.addFilter(OTelBaggageFilter())

    logging_config = config.get("logging", {})
    mode = logging_config.get("mode", DEFAULT_LOGGING_MODE)
    level = logging_config.get("level", DEFAULT_LOGGING_LEVEL)

    fmt = logging_config.get("primary_fields", DEFAULT_PRIMARY_FIELDS)
    defaults = logging_config.get("defaults", DEFAULT_DEFAULTS)
    reserved_attrs = logging_config.get("reserved_attrs", DEFAULT_IGNORED_FIELDS)

    handler.setFormatter(
        JsonFormatter(
            fmt=fmt,
            defaults=defaults,
            reserved_attrs=reserved_attrs,
            json_serializer=optional_json_dumps(mode=mode),
            json_indent=2 if mode == "prettyprint" else None,
        )
    )

    logger.addHandler(handler)
    logger.setLevel(level)

    logger.info("Logging Initialized")


def optional_json_dumps(mode="json"):
    """
    Return a json.dumps function that can output a simple console format or standard JSON.
    """

    def inner(obj, **json_kwargs):
        if not isinstance(obj, dict):
            return json.dumps(obj, **json_kwargs)

        if mode == "console":
            return " | ".join(str(obj.get(k, "")) for k in ("asctime", "levelname", "message"))

        return json.dumps(obj, **json_kwargs)

    return inner


@contextlib.contextmanager
def with_baggage_items(items: dict[str, str]):
    """
    Context manager that adds the given baggage items to the current OpenTelemetry context.
    Records logged inside the block carry the items once OTelBaggageFilter is installed.
    Usage:
        with with_baggage_items({"double": "MockWrapper(Placeholder)"}):
            logging.debug("...")
    """
    ctx = get_current()
    for key, value in items.items():
        ctx = baggage.set_baggage(key, value, context=ctx)
    token = attach(ctx)
    try:
        yield ctx
    finally:
        detach(token)


class OTelBaggageFilter(logging.Filter):
    def filter(self, record):
        ctx = get_current()
        for key, value in baggage.get_all(context=ctx).items():
            setattr(record, key, value)
        return True
