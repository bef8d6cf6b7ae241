"""Organization details and member listing."""

from dataclasses import dataclass

from cencli.client import CensysClient
from cencli.models import OrganizationDetails, OrganizationMember
from core.context import OperationContext
from core.errors import UsageError
from core.events import ProgressQueue, StreamQueue
from core.fetch import FetchResult, PageResult, ResponseMeta, fetch_cursor_pages


@dataclass
class OrganizationDetailsResult:
    data: OrganizationDetails
    meta: ResponseMeta


class OrganizationsService:
    """
    Organization lookups.

    org_id falls back to the configured organization when a call does not
    pass one; a missing organization is a usage error.
    """

    def __init__(self, client: CensysClient, default_org_id: str | None = None):
        self.client = client
        self.default_org_id = default_org_id or None

    def _resolve_org_id(self, org_id: str | None) -> str:
        resolved = org_id or self.default_org_id
        if not resolved:
            raise UsageError(
                "an organization ID is required: pass --org-id or set CENSYS_ORG_ID"
            )
        return resolved

    async def get_details(
        self, ctx: OperationContext, org_id: str | None = None
    ) -> OrganizationDetailsResult:
        resolved = self._resolve_org_id(org_id)
        res = await self.client.get_organization_details(ctx, resolved)
        return OrganizationDetailsResult(data=res.data, meta=res.meta)

    async def list_members(
        self,
        ctx: OperationContext,
        org_id: str | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
        progress: ProgressQueue | None = None,
        stream: StreamQueue | None = None,
    ) -> FetchResult[OrganizationMember]:
        """
        List every member of the organization.

        Any page failure fails the whole listing; no partial member lists.
        """
        resolved = self._resolve_org_id(org_id)

        async def call_page(token: str | None) -> PageResult[OrganizationMember]:
            res = await self.client.list_organization_members(
                ctx, resolved, page_size=page_size, page_token=token
            )
            return PageResult(
                items=res.data.members,
                meta=res.meta,
                next_token=res.data.pagination.next_page_token,
            )

        return await fetch_cursor_pages(
            ctx,
            call_page,
            max_pages=max_pages,
            describe=lambda page, collected: f"Fetching organization members (page {page})...",
            progress=progress,
            stream=stream,
            allow_partial=False,
            operation="list_organization_members",
        )


__all__ = ["OrganizationDetailsResult", "OrganizationsService"]
