# pageleads/services/graph/permissions.py
#
# Two-tier permission check before lead access:
#   1) account level: OAuth scopes granted to the app (me/permissions)
#   2) page level:    page tasks on a managed page (me/accounts?fields=tasks),
#                     lead access needs ACCESS_LEAD_GEN
#
# Tier 1 runs first and short-circuits, so a missing scope never costs a
# page-list fetch. The two failures carry different `level` values because
# they are fixed in different places (re-login vs. Page Settings > Tasks).

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from ...constants.graph_codes import (
    ACCESS_LEAD_GEN_TASK,
    ACCOUNT_SCOPE_INSTRUCTIONS,
    DEFAULT_REQUIRED_SCOPES,
    LEAD_ACCESS_HELP_URL,
    LEAD_ACCESS_INSTRUCTIONS,
)
from ...utils.logger import Log
from ..error_reporter import ErrorReporter
from .client import GraphClient
from .errors import GraphError, PermissionValidationError

LEVEL_ACCOUNT = "account"
LEVEL_PAGE = "page"


@dataclass
class PermissionCheck:
    ok: bool
    required: FrozenSet[str] = frozenset()
    granted: FrozenSet[str] = frozenset()
    missing: List[str] = field(default_factory=list)
    level: Optional[str] = None
    pages_checked: int = 0
    message: Optional[str] = None
    help_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "level": self.level,
            "missing": self.missing,
            "required": sorted(self.required),
            "granted": sorted(self.granted),
            "pages_checked": self.pages_checked,
            "message": self.message,
            "help_url": self.help_url,
        }

    def raise_for_missing(self) -> None:
        if not self.ok:
            raise PermissionValidationError(
                self.message or "Missing required Facebook permissions",
                missing=self.missing,
                level=self.level or LEVEL_ACCOUNT,
                help_url=self.help_url,
            )


def granted_from_permissions(entries: Iterable[Dict[str, Any]]) -> FrozenSet[str]:
    """me/permissions rows -> names whose status is 'granted'."""
    return frozenset(
        entry.get("permission")
        for entry in entries or []
        if isinstance(entry, dict) and entry.get("status") == "granted" and entry.get("permission")
    )


def missing_scopes(granted: Iterable[str], required: Iterable[str]) -> List[str]:
    return sorted(set(required) - set(granted))


def page_has_lead_access(page: Dict[str, Any]) -> bool:
    return ACCESS_LEAD_GEN_TASK in (page.get("tasks") or [])


class PermissionValidator:
    def __init__(
        self,
        client: GraphClient,
        reporter: Optional[ErrorReporter] = None,
        required_scopes: Optional[Iterable[str]] = None,
    ):
        self.client = client
        self.reporter = reporter
        self.required_scopes = frozenset(
            DEFAULT_REQUIRED_SCOPES if required_scopes is None else required_scopes
        )

    # ---------------------------------------------------------------
    # Graph reads
    # ---------------------------------------------------------------

    def granted_scopes(self, token: str) -> FrozenSet[str]:
        return granted_from_permissions(self.client.fetch("me/permissions", token))

    def managed_pages(self, token: str) -> List[Dict[str, Any]]:
        return self.client.fetch_all("me/accounts", token, fields=["id", "name", "tasks"])

    # ---------------------------------------------------------------
    # Checks
    # ---------------------------------------------------------------

    def check(
        self,
        token: str,
        required_scopes: Optional[Iterable[str]] = None,
        *,
        require_lead_access: bool = False,
        page_id: Optional[str] = None,
    ) -> PermissionCheck:
        """GraphError from the underlying fetches propagates to the caller."""
        log_tag = "[permissions.py][PermissionValidator][check]"
        required = frozenset(self.required_scopes if required_scopes is None else required_scopes)

        granted = self.granted_scopes(token)
        missing = missing_scopes(granted, required)

        if missing:
            Log.info(f"{log_tag} Missing required Facebook permissions: {missing}")
            self._diagnose("missing_permissions", {
                "level": LEVEL_ACCOUNT,
                "missing": missing,
                "required": sorted(required),
            })
            return PermissionCheck(
                ok=False,
                required=required,
                granted=granted,
                missing=missing,
                level=LEVEL_ACCOUNT,
                message=f"Missing required Facebook permissions: {', '.join(missing)}. {ACCOUNT_SCOPE_INSTRUCTIONS}",
            )

        if not require_lead_access:
            return PermissionCheck(ok=True, required=required, granted=granted)

        pages = self.managed_pages(token)
        if page_id is not None:
            candidates = [p for p in pages if str(p.get("id")) == str(page_id)]
        else:
            candidates = pages

        if not any(page_has_lead_access(p) for p in candidates):
            Log.info(
                f"{log_tag} No page grants {ACCESS_LEAD_GEN_TASK} "
                f"(pages_checked={len(candidates)}, page_id={page_id})"
            )
            self._diagnose("missing_page_tasks", {
                "level": LEVEL_PAGE,
                "missing": [ACCESS_LEAD_GEN_TASK],
                "page_id": page_id,
                "pages_checked": len(candidates),
            })
            return PermissionCheck(
                ok=False,
                required=required,
                granted=granted,
                missing=[ACCESS_LEAD_GEN_TASK],
                level=LEVEL_PAGE,
                pages_checked=len(candidates),
                message=LEAD_ACCESS_INSTRUCTIONS,
                help_url=LEAD_ACCESS_HELP_URL,
            )

        return PermissionCheck(
            ok=True,
            required=required,
            granted=granted,
            pages_checked=len(candidates),
        )

    def validate(
        self,
        token: str,
        required_scopes: Optional[Iterable[str]] = None,
        *,
        require_lead_access: bool = False,
        page_id: Optional[str] = None,
    ) -> bool:
        try:
            return self.check(
                token,
                required_scopes,
                require_lead_access=require_lead_access,
                page_id=page_id,
            ).ok
        except GraphError as e:
            Log.error(f"[permissions.py][PermissionValidator][validate] Error validating Facebook permissions: {e!r}")
            return False

    def require(
        self,
        token: str,
        required_scopes: Optional[Iterable[str]] = None,
        *,
        require_lead_access: bool = False,
        page_id: Optional[str] = None,
    ) -> PermissionCheck:
        """Like check(), but raises PermissionValidationError when unsatisfied."""
        result = self.check(
            token,
            required_scopes,
            require_lead_access=require_lead_access,
            page_id=page_id,
        )
        result.raise_for_missing()
        return result

    def _diagnose(self, kind: str, context: Dict[str, Any]) -> None:
        if self.reporter is None:
            return
        self.reporter.report(
            PermissionValidationError(
                f"{kind}: {', '.join(context.get('missing', []))}",
                missing=context.get("missing", []),
                level=context["level"],
            ),
            {"type": kind, **context},
        )


__all__ = [
    "PermissionValidator",
    "PermissionCheck",
    "granted_from_permissions",
    "missing_scopes",
    "page_has_lead_access",
    "LEVEL_ACCOUNT",
    "LEVEL_PAGE",
]
