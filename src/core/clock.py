"""
Relógio do domínio.

UTC sem tzinfo, o mesmo formato gravado nas colunas DateTime.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
