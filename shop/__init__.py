"""
Mechanic Shop

Shop-floor records and workflows on top of core.record_store:
    - Registrar:        create-or-find customers, mechanics and cars
    - Ownership:        which cars each customer owns
    - Service requests: intake from customer lookup to a saved request
    - Closures:         close a request with a mechanic, comment and bill
    - Reports:          the five read-only shop reports
    - Bills:            PDF bill per closed request
"""

from shop.registrar import EntityRegistrar, EntityKind
from shop.ownership import OwnershipResolver, select_from_menu
from shop.service_requests import ServiceRequestWorkflow, RequestState
from shop.closures import ClosureWorkflow, ClosureState
from shop.reports import ReportQueries

__all__ = [
    "EntityRegistrar", "EntityKind",
    "OwnershipResolver", "select_from_menu",
    "ServiceRequestWorkflow", "RequestState",
    "ClosureWorkflow", "ClosureState",
    "ReportQueries",
]
