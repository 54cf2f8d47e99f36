"""Registry of importable entity types."""
from typing import Dict, List

from import_engine.domain.imports.entities.base import EntityProfile
from import_engine.domain.imports.entities.candidates import CandidateProfile
from import_engine.domain.imports.entities.check_in_outs import CheckInOutProfile
from import_engine.domain.imports.entities.contacts import ContactProfile
from import_engine.domain.imports.entities.employees import EmployeeProfile
from import_engine.domain.imports.entities.eod_reports import EodReportProfile
from import_engine.domain.imports.entities.invoices import InvoiceProfile
from import_engine.domain.imports.entities.leads import LeadProfile
from import_engine.domain.imports.errors import ImportNotFoundError

PROFILES: Dict[str, EntityProfile] = {
    profile.entity_type: profile
    for profile in (
        ContactProfile(),
        LeadProfile(),
        CandidateProfile(),
        EmployeeProfile(),
        InvoiceProfile(),
        CheckInOutProfile(),
        EodReportProfile(),
    )
}


def get_profile(entity_type: str) -> EntityProfile:
    try:
        return PROFILES[entity_type]
    except KeyError:
        raise ImportNotFoundError(f"Unknown import type: {entity_type}")


def entity_types() -> List[str]:
    return sorted(PROFILES)
