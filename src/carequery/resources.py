"""Resource bindings for the care dashboard API.

Each function takes the application's SyncContext and returns the hooks for
one resource type. Keys live in KEYS so every binding that touches a resource
invalidates the same entries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from carequery.hooks import QueryHandle, ResourceHooks, crud_mutations
from carequery.keys import define_keys
from carequery.mutations import MutationDescriptor
from carequery.session import On401
from carequery.types import JSON, QueryKey

if TYPE_CHECKING:
    from carequery.context import SyncContext

KEYS = define_keys(
    {
        "plan_items": lambda: ("planItems",),
        "journal_logs": lambda: ("journalLogs",),
        "diet_logs": lambda: ("dietLogs",),
        "documents": lambda: ("documents",),
        "document": lambda id: ("documents", id),
        "hope_snippets": lambda: ("hopeSnippets",),
        "hope_snippet_random": lambda: ("hopeSnippetRandom",),
        "treatments": lambda: ("treatments",),
        "caregivers": lambda: ("caregivers",),
        "saved_trials": lambda: ("trials", "saved"),
        "saved_research": lambda: ("research", "saved"),
        "action_steps": lambda: ("actionSteps",),
        "resources": lambda: ("resources",),
        "user": lambda: ("user",),
    }
)


def _replace_where(items: Any, item_id: Any, **changes: Any) -> Any:
    if not isinstance(items, list):
        return items
    return [
        {**item, **changes} if isinstance(item, dict) and item.get("id") == item_id else item
        for item in items
    ]


def _drop_where(items: Any, item_id: Any) -> Any:
    if not isinstance(items, list):
        return items
    return [i for i in items if not (isinstance(i, dict) and i.get("id") == item_id)]


# -----------------------------------------------------------------------------
# Plan items
# -----------------------------------------------------------------------------


def _flip_completion(key: QueryKey, current: Any, payload: dict[str, Any]) -> Any:
    return _replace_where(current, payload["id"], isCompleted=payload["isCompleted"])


def plan_items(ctx: SyncContext) -> ResourceHooks[list[dict[str, Any]]]:
    key = KEYS["plan_items"]()
    mutations = crud_mutations("plan item", "/api/plan-items", [key])
    mutations["toggle"] = MutationDescriptor(
        name="update completion status",
        method="POST",
        url=lambda p: f"/api/plan-items/{p['id']}/complete",
        body=lambda p: {"isCompleted": p["isCompleted"]},
        invalidates=[key],
        optimistic=_flip_completion,
    )
    return ResourceHooks(ctx, key, "/api/plan-items", mutations=mutations)


# -----------------------------------------------------------------------------
# Logs
# -----------------------------------------------------------------------------


def journal_logs(ctx: SyncContext) -> ResourceHooks[list[dict[str, Any]]]:
    key = KEYS["journal_logs"]()
    return ResourceHooks(
        ctx,
        key,
        "/api/journal-logs",
        mutations=crud_mutations("journal log", "/api/journal-logs", [key]),
    )


def diet_logs(ctx: SyncContext) -> ResourceHooks[list[dict[str, Any]]]:
    key = KEYS["diet_logs"]()
    return ResourceHooks(
        ctx,
        key,
        "/api/diet-logs",
        mutations=crud_mutations("diet log", "/api/diet-logs", [key]),
    )


def treatments(ctx: SyncContext) -> ResourceHooks[list[dict[str, Any]]]:
    key = KEYS["treatments"]()
    return ResourceHooks(
        ctx,
        key,
        "/api/treatments",
        mutations=crud_mutations(
            "treatment", "/api/treatments", [key], update_method="PATCH"
        ),
    )


# -----------------------------------------------------------------------------
# Documents
# -----------------------------------------------------------------------------


def documents(ctx: SyncContext) -> ResourceHooks[list[dict[str, Any]]]:
    """Document list, documents by id, upload and analysis calls.

    Deleting or extracting text invalidates ``("documents",)``, which also
    covers every ``("documents", id)`` entry. Search and questions are writes
    with no cached effect.
    """
    key = KEYS["documents"]()
    mutations = {
        "upload": MutationDescriptor(
            name="upload document",
            method="POST",
            url="/api/documents",
            files=lambda p: {"file": p["file"]},
            body=lambda p: {k: v for k, v in p.items() if k != "file"} or None,
            invalidates=[key],
        ),
        "delete": MutationDescriptor(
            name="delete document",
            method="DELETE",
            url=lambda doc_id: f"/api/documents/{doc_id}",
            body=lambda _: None,
            invalidates=[key],
        ),
        "extract": MutationDescriptor(
            name="extract text",
            method="POST",
            url=lambda doc_id: f"/api/documents/{doc_id}/extract",
            body=lambda _: None,
            invalidates=[key],
        ),
        "search": MutationDescriptor(
            name="search documents",
            method="POST",
            url="/api/documents/search",
            body=lambda query: {"query": query},
        ),
        "ask": MutationDescriptor(
            name="ask question",
            method="POST",
            url=lambda p: f"/api/documents/{p['documentId']}/ask",
            body=lambda p: {"question": p["question"]},
        ),
    }
    return ResourceHooks(
        ctx,
        key,
        "/api/documents",
        item_url="/api/documents/{id}",
        mutations=mutations,
    )


# -----------------------------------------------------------------------------
# Hope snippets
# -----------------------------------------------------------------------------


class HopeSnippetHooks(ResourceHooks[list[dict[str, Any]]]):
    """Snippets filtered by category, plus a random pick per category."""

    def by_category(self, category: str | None = None) -> QueryHandle[list[dict[str, Any]]]:
        if category is None:
            return self.collection
        return self.view(category, params={"category": category})

    def random(self, category: str | None = None) -> QueryHandle[dict[str, Any]]:
        return QueryHandle(
            self._ctx,
            KEYS["hope_snippet_random"]() + ((category,) if category else ()),
            "/api/hope-snippets/random",
            params={"category": category} if category else None,
        )


def hope_snippets(ctx: SyncContext) -> HopeSnippetHooks:
    keys = [KEYS["hope_snippets"](), KEYS["hope_snippet_random"]()]
    return HopeSnippetHooks(
        ctx,
        keys[0],
        "/api/hope-snippets",
        mutations=crud_mutations("hope snippet", "/api/hope-snippets", keys),
    )


# -----------------------------------------------------------------------------
# Caregivers
# -----------------------------------------------------------------------------


def _remove_caregiver(key: QueryKey, current: Any, caregiver_id: Any) -> Any:
    return _drop_where(current, caregiver_id)


def caregivers(ctx: SyncContext) -> ResourceHooks[list[dict[str, Any]]]:
    key = KEYS["caregivers"]()
    mutations = {
        "invite": MutationDescriptor(
            name="send invitation",
            method="POST",
            url="/api/caregivers/invite",
            invalidates=[key],
        ),
        "update_permissions": MutationDescriptor(
            name="update permissions",
            method="PUT",
            url=lambda p: f"/api/caregivers/{p['caregiverId']}/permissions",
            body=lambda p: {"permissions": p["permissions"]},
            invalidates=[key],
        ),
        "remove": MutationDescriptor(
            name="remove caregiver",
            method="DELETE",
            url=lambda caregiver_id: f"/api/caregivers/{caregiver_id}",
            body=lambda _: None,
            invalidates=[key],
            optimistic=_remove_caregiver,
        ),
    }
    return ResourceHooks(ctx, key, "/api/caregivers", mutations=mutations)


# -----------------------------------------------------------------------------
# Saved research and trials
# -----------------------------------------------------------------------------


def saved_trials(ctx: SyncContext) -> ResourceHooks[list[dict[str, Any]] | None]:
    """Saved clinical trials. An expired session shows an empty list."""
    key = KEYS["saved_trials"]()
    mutations = {
        "save": MutationDescriptor(
            name="save trial",
            method="POST",
            url="/api/trials/saved",
            invalidates=[key],
        ),
    }
    return ResourceHooks(
        ctx, key, "/api/trials/saved", mutations=mutations, on401=On401.RETURN_EMPTY
    )


def saved_research(ctx: SyncContext) -> ResourceHooks[list[dict[str, Any]]]:
    key = KEYS["saved_research"]()
    mutations = {
        "save": MutationDescriptor(
            name="save research",
            method="POST",
            url="/api/research",
            invalidates=[key],
        ),
        "search": MutationDescriptor(
            name="search research",
            method="POST",
            url="/api/research/search",
            body=lambda query: {"query": query},
        ),
    }
    return ResourceHooks(ctx, key, "/api/research", mutations=mutations)


# -----------------------------------------------------------------------------
# Action steps
# -----------------------------------------------------------------------------


class ActionStepHooks(ResourceHooks[list[dict[str, Any]]]):
    async def generate(self, payload: Any = None) -> JSON:
        """Generate new steps, then reload the list through the cache."""
        result = await self.mutate("generate", payload)
        await self.refetch()
        # A read that was already pending predates the new steps and lands stale.
        await self.fetch()
        return result


def action_steps(ctx: SyncContext) -> ActionStepHooks:
    key = KEYS["action_steps"]()
    mutations = {
        "toggle": MutationDescriptor(
            name="update action step",
            method="POST",
            url=lambda step_id: f"/api/action-steps/{step_id}/toggle",
            body=lambda _: None,
            invalidates=[key],
        ),
        "generate": MutationDescriptor(
            name="generate action steps",
            method="POST",
            url="/api/action-steps/generate",
            invalidates=[key],
        ),
    }
    return ActionStepHooks(ctx, key, "/api/action-steps", mutations=mutations)


# -----------------------------------------------------------------------------
# Resource hub and user
# -----------------------------------------------------------------------------


class ResourceHubHooks(ResourceHooks[list[dict[str, Any]]]):
    def search(
        self, category: str | None = None, query: str | None = None
    ) -> QueryHandle[list[dict[str, Any]]]:
        return self.view(category, query, params={"category": category, "search": query})


def resource_hub(ctx: SyncContext) -> ResourceHubHooks:
    return ResourceHubHooks(ctx, KEYS["resources"](), "/api/resources")


def current_user(ctx: SyncContext) -> ResourceHooks[dict[str, Any]]:
    return ResourceHooks(ctx, KEYS["user"](), "/api/user", stale_after="5m")


__all__ = [
    "KEYS",
    "ActionStepHooks",
    "HopeSnippetHooks",
    "ResourceHubHooks",
    "action_steps",
    "caregivers",
    "current_user",
    "diet_logs",
    "documents",
    "hope_snippets",
    "journal_logs",
    "plan_items",
    "resource_hub",
    "saved_research",
    "saved_trials",
    "treatments",
]
