# Group catalog: pharmacy roster and service list with per-session fees (£).
# fee=None marks a variable service: revenue is entered directly, not counted.

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple


@dataclass(frozen=True)
class Service:
    id: str
    label: str
    fee: Optional[Decimal]
    category: str

    @property
    def is_variable(self) -> bool:
        return self.fee is None


@dataclass(frozen=True)
class Catalog:
    """Immutable reference data, injected into every calculation."""

    services: Tuple[Service, ...]
    pharmacies: Tuple[str, ...]

    def __post_init__(self):
        ids = [s.id for s in self.services]
        if len(ids) != len(set(ids)):
            raise ValueError("Service ids must be unique")
        if len(self.pharmacies) != len(set(self.pharmacies)):
            raise ValueError("Pharmacy names must be unique")

    @property
    def categories(self) -> Tuple[str, ...]:
        """Categories in first-appearance order."""
        seen = []
        for s in self.services:
            if s.category not in seen:
                seen.append(s.category)
        return tuple(seen)

    def service(self, service_id: str) -> Optional[Service]:
        for s in self.services:
            if s.id == service_id:
                return s
        return None

    def has_pharmacy(self, name: str) -> bool:
        return name in self.pharmacies


PHARMACIES = (
    "Binscombe Pharmacy",
    "Popley Pharmacy",
    "Direct Pharmacy",
    "Dapdune Pharmacy",
    "Winklebury Pharmacy",
    "East Wittering Pharmacy",
)

SERVICES = (
    Service("nms_intervention", "NMS – Intervention", Decimal("14.00"), "NHS Clinical"),
    Service("nms_followup", "NMS – Follow Up", Decimal("14.00"), "NHS Clinical"),
    Service("bp_check", "BP Clinic Check", Decimal("10.00"), "NHS Clinical"),
    Service("bp_abpm", "BP Clinic ABPM", Decimal("50.85"), "NHS Clinical"),
    Service("pcs_oral", "PCS – Oral Contraceptive", Decimal("25.00"), "NHS Clinical"),
    Service("pcs_emergency", "PCS – Emergency Contraceptive", Decimal("20.00"), "NHS Clinical"),
    Service("nhs_flu", "NHS Flu", Decimal("10.06"), "Vaccinations"),
    Service("private_flu", "Private Flu", Decimal("23.00"), "Vaccinations"),
    Service("nhs_covid", "NHS Covid", Decimal("10.06"), "Vaccinations"),
    Service("private_covid", "Private Covid", Decimal("99.00"), "Vaccinations"),
    Service("travel_clinic", "Travel Clinics", None, "Private Clinics"),
    Service("weight_loss", "Weight Loss Clinic", None, "Private Clinics"),
    Service("ear_single", "Ear Microsuction – Single", Decimal("40.00"), "Private Clinics"),
    Service("ear_both", "Ear Microsuction – Both Ears", Decimal("70.00"), "Private Clinics"),
    Service("cpcs_ums", "CPCS – UMS", Decimal("15.00"), "CPCS"),
    Service("cpcs_mi", "CPCS – MI", Decimal("17.00"), "CPCS"),
)

DEFAULT_CATALOG = Catalog(services=SERVICES, pharmacies=PHARMACIES)


def get_catalog() -> Catalog:
    """FastAPI dependency; tests override it with a fixture catalog."""
    return DEFAULT_CATALOG
