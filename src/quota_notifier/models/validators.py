"""Shared Pydantic types reused across the tenant and usage models."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BeforeValidator, Field


def normalize_email(v: Any) -> str | None:
    """Strip whitespace and map blank addresses to ``None``.

    * ``" a@x.com "`` → ``"a@x.com"``
    * ``""`` → ``None``
    * ``None`` → ``None``
    """
    if v is None:
        return None
    s = str(v).strip()
    return s or None


Email = Annotated[str | None, BeforeValidator(normalize_email)]
"""Optional email address: blank values collapse to None."""

MegaBytes = Annotated[int, Field(ge=0)]
"""Memory size in whole mebibytes."""

NonEmptyStr = Annotated[str, Field(min_length=1)]
"""Non-empty identifier or name."""
