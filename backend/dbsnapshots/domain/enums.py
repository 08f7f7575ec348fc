from __future__ import annotations

from enum import Enum


class DriverKind(str, Enum):
    MYSQL = "mysql"
    PGSQL = "pgsql"


class PostLoadScope(str, Enum):
    GLOBAL = "global"
    GROUP = "group"
    PLAN = "plan"
