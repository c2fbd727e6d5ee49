# pageleads/services/leads_service.py
#
# Pages, lead forms and leads on top of GraphClient.
#
# Sibling fetches (leads for N forms, leads for N pages) run concurrently:
# every call is submitted up front, each outcome is captured on its own and
# one failure never cancels the rest. There is no cancellation: if a caller
# stops waiting, in-flight retry loops still run until their policy ends them.

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..utils.logger import Log
from .graph.client import GraphClient
from .graph.errors import GraphError, PermissionValidationError
from .graph.permissions import LEVEL_PAGE, PermissionValidator, page_has_lead_access
from ..constants.graph_codes import (
    ACCESS_LEAD_GEN_TASK,
    LEAD_ACCESS_HELP_URL,
    LEAD_ACCESS_INSTRUCTIONS,
    PAGE_TOKEN_MISSING_INSTRUCTIONS,
)

USER_FIELDS = ["id", "name", "email", "picture"]
PAGE_FIELDS = [
    "id", "name", "access_token", "picture", "category",
    "fan_count", "link", "verification_status", "tasks",
]
FORM_FIELDS = ["id", "name", "status", "leads_count", "created_time"]
LEAD_FIELDS = ["id", "created_time", "ad_id", "form_id", "field_data"]

GRAPH_PAGE_LIMIT = 100


class PageNotFoundError(Exception):
    """The page is not among the pages the user manages."""

    def __init__(self, page_id: str):
        super().__init__(f"Page {page_id} not found in the user's accounts")
        self.page_id = page_id


def fan_out(
    items: Sequence[Any],
    operation: Callable[[Any], Any],
    *,
    describe: Callable[[Any], Dict[str, Any]],
    result_key: str = "leads",
    max_workers: int = 8,
    log_tag: str = "[leads_service.py][fan_out]",
) -> List[Dict[str, Any]]:
    """
    Run `operation` for every item concurrently and wait for all of them.

    Returns one dict per item, in input order: describe(item) plus either
    {result_key: value} or {result_key: [], "error": ..., "error_code": ...}.
    """
    if not items:
        return []

    results: List[Optional[Dict[str, Any]]] = [None] * len(items)
    workers = max(1, min(int(max_workers), len(items)))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(operation, item): i for i, item in enumerate(items)}
        for future in as_completed(futures):
            i = futures[future]
            entry = describe(items[i])
            try:
                entry[result_key] = future.result()
            except GraphError as e:
                Log.info(f"{log_tag}[{i}] failed: code={e.code} message={e.message}")
                entry.update({
                    result_key: [],
                    "error": e.message,
                    "error_code": e.code,
                    "error_subcode": e.subcode,
                })
            except Exception as e:
                Log.info(f"{log_tag}[{i}] failed: {e!r}")
                entry.update({result_key: [], "error": str(e) or "Unknown error"})
            results[i] = entry

    return results


class LeadsService:
    def __init__(
        self,
        client: GraphClient,
        validator: PermissionValidator,
        *,
        max_workers: int = 8,
    ):
        self.client = client
        self.validator = validator
        self.max_workers = max_workers

    # ---------------------------------------------------------------
    # User and pages
    # ---------------------------------------------------------------

    def get_profile(self, token: str) -> Dict[str, Any]:
        return self.client.fetch_node("me", token, fields=USER_FIELDS)

    def list_pages(self, token: str) -> List[Dict[str, Any]]:
        return self.client.fetch_all("me/accounts", token, fields=PAGE_FIELDS)

    def get_overview(self, token: str) -> Dict[str, Any]:
        """Profile and managed pages, fetched side by side. Either failure propagates."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            user_future = pool.submit(self.get_profile, token)
            pages_future = pool.submit(self.list_pages, token)
            user = user_future.result()
            pages = pages_future.result()

        Log.info(
            f"[leads_service.py][LeadsService][get_overview] "
            f"user={user.get('id')} total_pages={len(pages)}"
        )
        return {"user": user, "pages": pages}

    def find_page(self, token: str, page_id: str) -> Dict[str, Any]:
        pages = self.client.fetch_all("me/accounts", token, fields=["name", "id", "access_token", "tasks"])
        page = next((p for p in pages if str(p.get("id")) == str(page_id)), None)
        if page is None:
            raise PageNotFoundError(page_id)
        return page

    @staticmethod
    def ensure_lead_access(page: Dict[str, Any]) -> None:
        if not page_has_lead_access(page):
            raise PermissionValidationError(
                LEAD_ACCESS_INSTRUCTIONS,
                missing=[ACCESS_LEAD_GEN_TASK],
                level=LEVEL_PAGE,
                help_url=LEAD_ACCESS_HELP_URL,
            )
        if not page.get("access_token"):
            raise PermissionValidationError(
                PAGE_TOKEN_MISSING_INSTRUCTIONS,
                missing=["access_token"],
                level=LEVEL_PAGE,
            )

    # ---------------------------------------------------------------
    # Forms and leads
    # ---------------------------------------------------------------

    def list_forms(self, page_id: str, page_token: str) -> List[Dict[str, Any]]:
        return self.client.fetch(
            f"{page_id}/leadgen_forms",
            page_token,
            {"limit": GRAPH_PAGE_LIMIT},
            fields=FORM_FIELDS,
        )

    def get_form_leads(self, form_id: str, page_token: str) -> List[Dict[str, Any]]:
        return self.client.fetch_all(
            f"{form_id}/leads",
            page_token,
            {"limit": GRAPH_PAGE_LIMIT},
            fields=LEAD_FIELDS,
        )

    def fetch_leads_for_forms(self, forms: Sequence[Dict[str, Any]], page_token: str) -> List[Dict[str, Any]]:
        return fan_out(
            forms,
            lambda form: self.get_form_leads(form["id"], page_token),
            describe=lambda form: {"form_id": form.get("id"), "form_name": form.get("name")},
            max_workers=self.max_workers,
            log_tag="[leads_service.py][LeadsService][fetch_leads_for_forms]",
        )

    # ---------------------------------------------------------------
    # Composite reads used by the HTTP resources
    # ---------------------------------------------------------------

    def get_page_forms(self, token: str, page_id: str) -> Dict[str, Any]:
        page = self.find_page(token, page_id)
        self.ensure_lead_access(page)
        forms = self.list_forms(page_id, page["access_token"])
        return {"page": {"id": page.get("id"), "name": page.get("name")}, "forms": forms}

    def get_form_leads_for_page(self, token: str, page_id: str, form_id: str) -> Dict[str, Any]:
        page = self.find_page(token, page_id)
        self.ensure_lead_access(page)
        leads = self.get_form_leads(form_id, page["access_token"])
        return {"form_id": form_id, "leads": leads}

    def get_page_leads(self, token: str, page_id: str) -> Dict[str, Any]:
        """
        Full lead pull for one page:
          account scopes -> page task -> forms -> leads per form (fan-out).

        The page tier is checked on the page record itself, so me/accounts
        is read once.
        """
        self.validator.require(token)

        page = self.find_page(token, page_id)
        self.ensure_lead_access(page)

        forms = self.list_forms(page_id, page["access_token"])
        leads = self.fetch_leads_for_forms(forms, page["access_token"])

        Log.info(
            f"[leads_service.py][LeadsService][get_page_leads] page={page_id} "
            f"forms={len(forms)} failed_forms={sum(1 for r in leads if r.get('error'))}"
        )
        return {
            "page": {"id": page.get("id"), "name": page.get("name")},
            "forms": forms,
            "leads": leads,
        }

    def _collect_page_leads(self, page_id: str, page_token: str) -> List[Dict[str, Any]]:
        leads: List[Dict[str, Any]] = []
        for form in self.list_forms(page_id, page_token):
            leads.extend(self.get_form_leads(form["id"], page_token))
        return leads

    def fetch_leads_for_pages(self, page_ids: Sequence[str], page_tokens: Sequence[str]) -> List[Dict[str, Any]]:
        if len(page_ids) != len(page_tokens):
            raise ValueError("Mismatched page IDs and tokens")

        pairs = list(zip(page_ids, page_tokens))
        return fan_out(
            pairs,
            lambda pair: self._collect_page_leads(pair[0], pair[1]),
            describe=lambda pair: {"page_id": pair[0]},
            max_workers=self.max_workers,
            log_tag="[leads_service.py][LeadsService][fetch_leads_for_pages]",
        )


__all__ = ["LeadsService", "PageNotFoundError", "fan_out"]
