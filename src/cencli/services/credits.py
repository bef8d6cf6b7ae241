"""Credit balances for the calling user and for an organization."""

from dataclasses import dataclass

from cencli.models import OrganizationCredits, UserCredits
from cencli.services.organizations import OrganizationsService
from core.context import OperationContext
from core.fetch import ResponseMeta


@dataclass
class OrganizationCreditsResult:
    data: OrganizationCredits
    meta: ResponseMeta


@dataclass
class UserCreditsResult:
    data: UserCredits
    meta: ResponseMeta


class CreditsService(OrganizationsService):
    """Single-call credit lookups. Organization credits use the default org when none is given."""

    async def get_user_credits(self, ctx: OperationContext) -> UserCreditsResult:
        res = await self.client.get_user_credits(ctx)
        return UserCreditsResult(data=res.data, meta=res.meta)

    async def get_organization_credits(
        self, ctx: OperationContext, org_id: str | None = None
    ) -> OrganizationCreditsResult:
        resolved = self._resolve_org_id(org_id)
        res = await self.client.get_organization_credits(ctx, resolved)
        return OrganizationCreditsResult(data=res.data, meta=res.meta)


__all__ = ["CreditsService", "OrganizationCreditsResult", "UserCreditsResult"]
