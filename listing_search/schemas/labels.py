# listing_search/schemas/labels.py
from __future__ import annotations

import re
from collections.abc import Iterable
from enum import Enum
from re import Pattern
from typing import TypeVar

T = TypeVar("T", bound=Enum)

# =========================
# Canonical label enums
# =========================


class DealType(str, Enum):
    """Transaction kind of a listing; ``all`` is only meaningful as a filter value."""

    all = "Tous"
    sale = "Vente"
    rent = "Location"
    rent_monthly = "par_mois"
    rent_six_months = "six_mois"
    rent_twelve_months = "douze_mois"
    rent_nightly = "par_nuit"
    rent_short_stay = "court_sejour"


class AmenityKey(str, Enum):
    residence_fermee = "residence_fermee"
    parking_sous_sol = "parking_sous_sol"
    garage = "garage"
    box = "box"
    luxe = "luxe"
    haut_standing = "haut_standing"
    domotique = "domotique"
    double_ascenseur = "double_ascenseur"
    concierge = "concierge"
    camera_surveillance = "camera_surveillance"
    groupe_electrogene = "groupe_electrogene"
    chauffage_central = "chauffage_central"
    climatisation = "climatisation"
    cheminee = "cheminee"
    dressing = "dressing"
    porte_blindee = "porte_blindee"
    cuisine_equipee = "cuisine_equipee"
    sdb_italienne = "sdb_italienne"
    deux_balcons = "deux_balcons"
    terrasse = "terrasse"
    jardin = "jardin"
    piscine = "piscine"
    salle_sport = "salle_sport"
    interphone = "interphone"
    fibre = "fibre"
    lumineux = "lumineux"
    securite_h24 = "securite_h24"
    vue_ville = "vue_ville"
    vue_mer = "vue_mer"


class PublishedWithin(str, Enum):
    all = "all"
    last_7_days = "7"
    last_30_days = "30"
    last_90_days = "90"


class SortMode(str, Enum):
    relevance = "relevance"
    newest = "newest"
    price_asc = "price_asc"
    price_desc = "price_desc"
    area_desc = "area_desc"


class ViewMode(str, Enum):
    grid = "grid"
    list = "list"


class SuggestionType(str, Enum):
    smart_query = "smart_query"
    transaction = "transaction"
    category = "category"
    commune = "commune"
    district = "district"
    room = "room"


class PresetSource(str, Enum):
    curated = "curated"
    generated = "generated"
    custom = "custom"


class BehaviorEventType(str, Enum):
    view = "view"
    favorite = "favorite"
    contact = "contact"
    search_click = "search_click"


# =========================
# Display labels
# =========================

AMENITY_LABELS: dict[AmenityKey, str] = {
    AmenityKey.residence_fermee: "Residence fermee",
    AmenityKey.parking_sous_sol: "Parking sous-sol",
    AmenityKey.garage: "Garage",
    AmenityKey.box: "Box",
    AmenityKey.luxe: "Luxe",
    AmenityKey.haut_standing: "Haut standing",
    AmenityKey.domotique: "Domotique",
    AmenityKey.double_ascenseur: "Double ascenseur",
    AmenityKey.concierge: "Concierge",
    AmenityKey.camera_surveillance: "Camera de surveillance",
    AmenityKey.groupe_electrogene: "Groupe electrogene",
    AmenityKey.chauffage_central: "Chauffage central",
    AmenityKey.climatisation: "Climatisation",
    AmenityKey.cheminee: "Cheminee",
    AmenityKey.dressing: "Dressing",
    AmenityKey.porte_blindee: "Porte blindee",
    AmenityKey.cuisine_equipee: "Cuisine equipee",
    AmenityKey.sdb_italienne: "Salle de bain italienne",
    AmenityKey.deux_balcons: "Deux balcons",
    AmenityKey.terrasse: "Terrasse",
    AmenityKey.jardin: "Jardin",
    AmenityKey.piscine: "Piscine",
    AmenityKey.salle_sport: "Salle de sport",
    AmenityKey.interphone: "Interphone",
    AmenityKey.fibre: "Wifi fibre optique",
    AmenityKey.lumineux: "Appartement tres lumineux",
    AmenityKey.securite_h24: "Agent de securite H24",
    AmenityKey.vue_ville: "Vue ville",
    AmenityKey.vue_mer: "Vue mer",
}

DEAL_TYPE_LABELS: dict[DealType, str] = {
    DealType.all: "Tous",
    DealType.sale: "Vente",
    DealType.rent: "Location",
    DealType.rent_monthly: "Location / par mois",
    DealType.rent_six_months: "Location / 6 mois",
    DealType.rent_twelve_months: "Location / 12 mois",
    DealType.rent_nightly: "Location / par nuit",
    DealType.rent_short_stay: "Location / court séjour",
}

ROOM_OPTIONS: tuple[str, ...] = ("Studio", "T1", "T2", "T3", "T4", "T5", "T6+", "F2", "F3", "F4", "F5", "F6+")

ORAN_COMMUNES: tuple[str, ...] = (
    "Oran",
    "Gdyel",
    "Bir El Djir",
    "Hassi Bounif",
    "Es Senia",
    "Arzew",
    "Bethioua",
    "Marsat El Hadjadj",
    "Aïn El Turk",
    "El Ançor",
    "Oued Tlelat",
    "Tafraoui",
    "Sidi Chami",
    "Boufatis",
    "Mers El Kébir",
    "Bousfer",
    "El Kerma",
    "El Braya",
    "Hassi Ben Okba",
    "Ben Freha",
    "Hassi Mefsoukh",
    "Sidi Ben Yebka",
    "Misserghin",
    "Boutlélis",
    "Aïn El Kerma",
    "Aïn El Biya",
)

# =========================
# Phrase lexicons (French / Arabic / English)
# =========================

# Ordered: the first deal type whose label or term occurs in a query wins.
TRANSACTION_TERMS: dict[DealType, tuple[str, ...]] = {
    DealType.sale: ("vente", "vendre", "sale", "buy", "achat", "بيع"),
    DealType.rent: ("location", "louer", "rent", "rental", "lease", "كراء", "ايجار"),
    DealType.rent_monthly: ("par mois", "mensuel", "monthly", "mois"),
    DealType.rent_six_months: ("6 mois", "six mois", "6mois"),
    DealType.rent_twelve_months: ("12 mois", "douze mois", "12mois", "annuel", "yearly"),
    DealType.rent_nightly: ("par nuit", "par nuite", "nuit", "nightly"),
    DealType.rent_short_stay: ("court sejour", "court séjour", "short stay", "vacance", "weekend"),
}

# Keyword probes for raw stored location types, checked in this order.
LOCATION_TYPE_PROBES: tuple[tuple[DealType, tuple[str, ...]], ...] = (
    (DealType.sale, ("vente", "sale")),
    (DealType.rent_nightly, ("par_nuit", "par nuit", "par nuite", "night")),
    (DealType.rent_short_stay, ("court_sejour", "court sejour", "short stay", "vacance", "weekend")),
    (DealType.rent_twelve_months, ("douze_mois", "douze mois", "12 mois", "12mois", "annuel", "year")),
    (DealType.rent_six_months, ("six_mois", "six mois", "6 mois", "6mois")),
    (DealType.rent_monthly, ("par_mois", "par mois", "mensuel", "monthly")),
    (DealType.rent, ("location", "louer", "rent", "rental", "lease", "كراء", "ايجار")),
)

CATEGORY_TERMS: dict[str, tuple[str, ...]] = {
    "Appartement": (
        "appartement",
        "appart",
        "apartment",
        "studio",
        "f2",
        "f3",
        "f4",
        "f5",
        "f6",
        "t1",
        "t2",
        "t3",
        "t4",
        "t5",
        "t6",
        "شقة",
    ),
    "Villa": ("villa", "house", "maison", "فيلا"),
    "Terrain": ("terrain", "lot", "parcelle", "land", "ارض"),
    "Local": ("local", "commercial", "commerce", "shop", "boutique", "magasin", "محل"),
    "Bureau": ("bureau", "office", "administratif", "مكتب"),
}

# Categories for which room tokens carry no meaning.
NON_ROOM_CATEGORY_TERMS: tuple[str, ...] = (
    "terrain",
    "lot",
    "parcelle",
    "land",
    "local",
    "commercial",
    "commerce",
    "shop",
    "boutique",
    "magasin",
    "bureau",
    "office",
    "ارض",
    "محل",
    "مكتب",
)
APARTMENT_CONTEXT_TERMS: tuple[str, ...] = ("appartement", "appart", "apartment", "studio", "شقة")
VILLA_CONTEXT_TERMS: tuple[str, ...] = ("villa", "maison", "house", "فيلا")

NEGATION_PREFIXES: tuple[str, ...] = ("sans", "without", "no", "pas de", "بدون", "بلا")

ALIAS_TABLE: dict[str, tuple[str, ...]] = {
    "oran": ("wahran", "وهران"),
    "wahran": ("oran", "وهران"),
    "وهران": ("oran", "wahran"),
    "bir el djir": ("bir eldjir", "بير الجير", "bir djir"),
    "bir eldjir": ("bir el djir", "بير الجير"),
    "بير الجير": ("bir el djir", "bir eldjir"),
    "canastel": ("canastl", "kanastel", "كاناستيل"),
    "canastl": ("canastel", "kanastel"),
    "es senia": ("essenia", "السنية", "el senia"),
    "essenia": ("es senia", "السنية"),
    "sidi chahmi": ("sidi chehmi", "سيدي الشحمي"),
    "appartement": ("appartement", "appart", "apartment", "شقة"),
    "villa": ("villa", "maison", "house", "فيلا"),
    "terrain": ("terrain", "lot", "parcelle", "land", "ارض"),
    "vente": ("vente", "sale", "buy", "achat", "بيع"),
    "location": ("location", "rent", "rental", "lease", "كراء", "ايجار"),
}

# Terms that, preceded by a negation prefix, exclude an amenity.
AMENITY_NEGATION_TERMS: dict[AmenityKey, tuple[str, ...]] = {
    AmenityKey.residence_fermee: ("residence fermee", "residence", "résidence", "اقامة مغلقة"),
    AmenityKey.parking_sous_sol: ("parking", "sous sol", "parking sous sol"),
    AmenityKey.garage: ("garage",),
    AmenityKey.box: ("box",),
    AmenityKey.luxe: ("luxe",),
    AmenityKey.haut_standing: ("haut standing", "standing"),
    AmenityKey.domotique: ("domotique", "smart home"),
    AmenityKey.double_ascenseur: ("ascenseur", "double ascenseur", "elevator"),
    AmenityKey.concierge: ("concierge", "gardien"),
    AmenityKey.camera_surveillance: ("camera", "surveillance"),
    AmenityKey.groupe_electrogene: ("groupe electrogene", "generateur"),
    AmenityKey.chauffage_central: ("chauffage", "chauffage central"),
    AmenityKey.climatisation: ("clim", "climatisation", "ac"),
    AmenityKey.cheminee: ("cheminee",),
    AmenityKey.dressing: ("dressing",),
    AmenityKey.porte_blindee: ("porte blindee",),
    AmenityKey.cuisine_equipee: ("cuisine equipee", "cuisine"),
    AmenityKey.sdb_italienne: ("italienne", "salle de bain italienne"),
    AmenityKey.deux_balcons: ("balcon", "deux balcons"),
    AmenityKey.terrasse: ("terrasse",),
    AmenityKey.jardin: ("jardin",),
    AmenityKey.piscine: ("piscine", "pool"),
    AmenityKey.salle_sport: ("salle de sport", "gym"),
    AmenityKey.interphone: ("interphone",),
    AmenityKey.fibre: ("fibre", "wifi", "internet"),
    AmenityKey.lumineux: ("lumineux", "lumineuse"),
    AmenityKey.securite_h24: ("securite", "h24", "security"),
    AmenityKey.vue_ville: ("vue ville", "city view"),
    AmenityKey.vue_mer: ("vue mer", "sea view", "mer"),
}

# Positive amenity cues, matched against the folded query.
AMENITY_CUE_PATTERNS: list[tuple[Pattern[str], AmenityKey]] = [
    (re.compile(r"vue\s*mer|mer\b"), AmenityKey.vue_mer),
    (re.compile(r"vue\s*ville|ville\b"), AmenityKey.vue_ville),
    (re.compile(r"fibre|wifi"), AmenityKey.fibre),
    (re.compile(r"lumineux|lumi(n|ne)u"), AmenityKey.lumineux),
    (re.compile(r"parking|sous[-\s]?sol"), AmenityKey.parking_sous_sol),
    (re.compile(r"garage"), AmenityKey.garage),
    (re.compile(r"box"), AmenityKey.box),
    (re.compile(r"luxe"), AmenityKey.luxe),
    (re.compile(r"haut\s*standing"), AmenityKey.haut_standing),
    (re.compile(r"domotique|smart\s*home"), AmenityKey.domotique),
    (re.compile(r"clim|climatisation"), AmenityKey.climatisation),
    (re.compile(r"chauffage|central"), AmenityKey.chauffage_central),
    (re.compile(r"cheminee"), AmenityKey.cheminee),
    (re.compile(r"dressing"), AmenityKey.dressing),
    (re.compile(r"porte\s*blindee"), AmenityKey.porte_blindee),
    (re.compile(r"résidence\s*fermée|residence\s*fermee|fermee"), AmenityKey.residence_fermee),
    (re.compile(r"sécurité|securite|h24"), AmenityKey.securite_h24),
    (re.compile(r"ascenseur"), AmenityKey.double_ascenseur),
    (re.compile(r"concierge|gardien"), AmenityKey.concierge),
    (re.compile(r"camera|surveillance"), AmenityKey.camera_surveillance),
    (re.compile(r"groupe\s*electrogene|generateur"), AmenityKey.groupe_electrogene),
    (re.compile(r"balcon"), AmenityKey.deux_balcons),
    (re.compile(r"terrasse"), AmenityKey.terrasse),
    (re.compile(r"jardin"), AmenityKey.jardin),
    (re.compile(r"piscine"), AmenityKey.piscine),
    (re.compile(r"salle\s*de\s*sport|gym"), AmenityKey.salle_sport),
    (re.compile(r"interphone"), AmenityKey.interphone),
    (re.compile(r"cuisine\s*(é|e)quip(é|e)e"), AmenityKey.cuisine_equipee),
    (re.compile(r"italienne|douche"), AmenityKey.sdb_italienne),
]

# =========================
# Helpers
# =========================


def amenity_label(key: AmenityKey | str) -> str:
    """Display label for an amenity key; unknown keys fall back to spaced text."""
    try:
        return AMENITY_LABELS[AmenityKey(key)]
    except ValueError:
        return str(key).replace("_", " ")


def deal_type_label(deal: DealType) -> str:
    return DEAL_TYPE_LABELS.get(deal, deal.value)


def coerce_enum(enum_cls: type[T], value: object, default: T) -> T:
    """Return ``enum_cls(value)`` or ``default`` when the value is not a member."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


def known_amenities(values: Iterable[object]) -> list[AmenityKey]:
    """Keep only recognized amenity keys, de-duplicated, in first-seen order."""
    out: list[AmenityKey] = []
    for v in values:
        try:
            key = AmenityKey(v)
        except ValueError:
            continue
        if key not in out:
            out.append(key)
    return out


__all__ = [
    "DealType",
    "AmenityKey",
    "PublishedWithin",
    "SortMode",
    "ViewMode",
    "SuggestionType",
    "PresetSource",
    "BehaviorEventType",
    "AMENITY_LABELS",
    "DEAL_TYPE_LABELS",
    "ROOM_OPTIONS",
    "ORAN_COMMUNES",
    "TRANSACTION_TERMS",
    "LOCATION_TYPE_PROBES",
    "CATEGORY_TERMS",
    "NON_ROOM_CATEGORY_TERMS",
    "APARTMENT_CONTEXT_TERMS",
    "VILLA_CONTEXT_TERMS",
    "NEGATION_PREFIXES",
    "ALIAS_TABLE",
    "AMENITY_NEGATION_TERMS",
    "AMENITY_CUE_PATTERNS",
    "amenity_label",
    "deal_type_label",
    "coerce_enum",
    "known_amenities",
]
