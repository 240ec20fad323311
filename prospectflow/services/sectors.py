"""
Sector reference table — maps business sectors to OpenStreetMap tag filters.

Each sector has a primary tag plus optional alternates; the directory query
unions all of them. Codes are unique and stable; labels are display text.
"""

from prospectflow.schemas import Sector


def _sector(code: str, label: str, key: str, value: str, *alternates: tuple[str, str]) -> Sector:
    return Sector(code=code, label=label, primary_tag=(key, value), alternate_tags=tuple(alternates))


# ─── Reference table ───────────────────────────────────────────────────
SECTORS: list[Sector] = [
    _sector("hairdresser", "Coiffeur", "shop", "hairdresser"),
    _sector("restaurant", "Restaurant", "amenity", "restaurant", ("amenity", "fast_food")),
    _sector("bakery", "Boulangerie", "shop", "bakery"),
    _sector("pharmacy", "Pharmacie", "amenity", "pharmacy"),
    _sector("doctors", "Médecin / Médecine générale", "amenity", "doctors", ("healthcare", "doctor")),
    _sector("dentist", "Dentiste", "amenity", "dentist", ("healthcare", "dentist")),
    _sector("car_repair", "Garage / Auto", "shop", "car_repair", ("amenity", "car_repair")),
    _sector("plumber", "Plombier", "craft", "plumber"),
    _sector("electrician", "Électricien", "craft", "electrician"),
    _sector("joiner", "Menuisier / Charpentier", "craft", "joiner", ("craft", "carpenter")),
    _sector("painter", "Peintre en bâtiment", "craft", "painter"),
    _sector("architect", "Architecte", "office", "architect"),
    _sector("estate_agent", "Agence immobilière", "office", "estate_agent", ("shop", "estate_agent")),
    _sector("lawyer", "Avocat", "office", "lawyer"),
    _sector("accountant", "Comptable / Expert-comptable", "office", "accountant"),
    _sector("insurance", "Assurance", "office", "insurance"),
    _sector("bank", "Banque", "amenity", "bank"),
    _sector("hotel", "Hôtel", "tourism", "hotel", ("tourism", "guest_house")),
    _sector("florist", "Fleuriste", "shop", "florist"),
    _sector("optician", "Opticien", "shop", "optician"),
    _sector("veterinary", "Vétérinaire", "amenity", "veterinary", ("healthcare", "veterinary")),
    _sector(
        "physiotherapist", "Kinésithérapeute", "healthcare", "physiotherapist",
        ("amenity", "physiotherapist"),
    ),
    _sector("photo_studio", "Photographe", "shop", "photo_studio", ("craft", "photographer")),
    _sector("printer", "Imprimerie", "craft", "printer", ("shop", "copyshop")),
    _sector("taxi", "Taxi / VTC", "amenity", "taxi"),
    _sector("dry_cleaning", "Pressing / Nettoyage", "shop", "dry_cleaning", ("shop", "laundry")),
    _sector("convenience", "Épicerie / Alimentation", "shop", "convenience", ("shop", "supermarket")),
    _sector("cafe", "Café / Bar", "amenity", "cafe", ("amenity", "bar")),
    # Shares amenity=restaurant with "Restaurant"; the cuisine tag widens it
    _sector("pizzeria", "Pizzeria", "amenity", "restaurant", ("cuisine", "pizza")),
    _sector("mason", "Maçon", "craft", "mason", ("craft", "construction")),
]

_BY_CODE = {s.code: s for s in SECTORS}
_BY_LABEL = {s.label.casefold(): s for s in SECTORS}


def get_sector(code: str) -> Sector | None:
    return _BY_CODE.get(code)


def resolve_sector(identifier: str) -> Sector | None:
    """Resolve a caller-supplied sector by internal code or display label (case-insensitive)."""
    if not identifier:
        return None
    ident = identifier.strip()
    return _BY_CODE.get(ident) or _BY_CODE.get(ident.lower()) or _BY_LABEL.get(ident.casefold())
