"""Command services: each drives the fetch engine for one command family."""

from cencli.services.aggregate import AggregateParams, AggregateResult, AggregateService
from cencli.services.credits import CreditsService, OrganizationCreditsResult, UserCreditsResult
from cencli.services.history import HistoryService
from cencli.services.organizations import OrganizationDetailsResult, OrganizationsService
from cencli.services.search import (
    InvalidPaginationParamsError,
    SearchParams,
    SearchResult,
    SearchService,
)
from cencli.services.view import ViewService

__all__ = [
    "AggregateParams",
    "AggregateResult",
    "AggregateService",
    "CreditsService",
    "HistoryService",
    "InvalidPaginationParamsError",
    "OrganizationCreditsResult",
    "OrganizationDetailsResult",
    "OrganizationsService",
    "SearchParams",
    "SearchResult",
    "SearchService",
    "UserCreditsResult",
    "ViewService",
]
