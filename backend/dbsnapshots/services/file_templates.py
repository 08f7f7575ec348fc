"""Snapshot filename templates.

A template such as ``db-snapshot-daily-{date:%Y%m%d}`` splits into a fixed
prefix, a strftime date format and a fixed postfix. Rendering a time and
matching it back are inverse operations, truncated to the format's precision.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from dbsnapshots.core.errors import ConfigurationError

DEFAULT_DATE_FORMAT = "%Y%m%d"

# Week numbers cannot be turned back into a calendar date by strptime
UNSUPPORTED_DATE_TOKENS = ("%U", "%W", "%V", "%G")

_DATE_PLACEHOLDER = re.compile(r"\{date(?::(?P<format>[^}]*))?\}")


@dataclass(frozen=True)
class FileTemplate:
    template: str
    prefix: str
    postfix: str
    date_format: str

    @classmethod
    def parse(cls, template: str, plan_name: str) -> "FileTemplate":
        if template.count("{") > 1:
            raise ConfigurationError(
                f"file_template for snapshot plan {plan_name} can only contain one date replacement"
            )
        match = _DATE_PLACEHOLDER.search(template)
        if match is None:
            raise ConfigurationError(
                f"file_template for snapshot plan {plan_name} does not have a {{date}} placeholder"
            )
        date_format = match.group("format") or DEFAULT_DATE_FORMAT
        for token in UNSUPPORTED_DATE_TOKENS:
            if token in date_format:
                raise ConfigurationError(
                    f'"{token}" in the date format of snapshot plan {plan_name} is not supported '
                    "as it cannot be parsed back into a date"
                )
        return cls(
            template=template,
            prefix=template[: match.start()],
            postfix=template[match.end():],
            date_format=date_format,
        )

    @property
    def specificity(self) -> int:
        return len(self.prefix) + len(self.postfix)

    def render(self, moment: datetime) -> str:
        return f"{self.prefix}{moment.strftime(self.date_format)}{self.postfix}"

    def match(self, file_name: str) -> Optional[datetime]:
        """Date encoded in `file_name`, or None when it does not fit the template."""
        name = file_name.split(".", 1)[0]
        if self.prefix and not name.startswith(self.prefix):
            return None
        if self.postfix and not name.endswith(self.postfix):
            return None
        if len(name) < self.specificity:
            return None
        date_part = name[len(self.prefix): len(name) - len(self.postfix)]
        try:
            return datetime.strptime(date_part, self.date_format)
        except ValueError:
            return None
