"""Holds the audit context of the current session until the next run replaces it."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from extaudit.domain.model import AuditContext, ContextSummary


class AuditSession:
    def __init__(self) -> None:
        self._context: AuditContext | None = None
        self._summary: ContextSummary | None = None

    @property
    def context(self) -> AuditContext | None:
        return self._context

    @property
    def summary(self) -> ContextSummary | None:
        return self._summary

    @property
    def has_context(self) -> bool:
        return self._context is not None and self._summary is not None

    def set_context(self, context: AuditContext, summary: ContextSummary) -> None:
        self._context = context
        self._summary = summary

    def clear(self) -> None:
        self._context = None
        self._summary = None
