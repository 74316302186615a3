"""
Constants for the AutoKosten calculator (auto privé kopen, zakelijk gebruiken).
Bijtelling schedules per DET year, cost defaults and RDW Open Data settings.
"""

# =============================================================================
# KILOMETERVERGOEDING
# =============================================================================

# Onbelaste vergoeding per zakelijke kilometer (2025)
# Bron: https://www.belastingdienst.nl/wps/wcm/connect/nl/auto-en-vervoer/content/vergoeding-voor-reiskosten
KILOMETER_ALLOWANCE = 0.23

# =============================================================================
# BIJTELLING TABEL (per jaar van eerste toelating)
# =============================================================================
# Het bijtellingspercentage staat vast op het regime van het DET-jaar,
# gedurende 60 maanden (plus 1 maand aanloop). Daarna geldt het regime
# van het lopende jaar.
#
# Per rij:
# - standard_rate:   fossiel, hybride, plug-in hybride, LPG, CNG
# - electric_rate:   elektrisch en waterstof, tot electric_cap
# - electric_cap:    cataloguswaarde tot waar electric_rate geldt (None = vlak)
# - electric_rate_above_cap: percentage over het deel boven de cap
# - hydrogen_rate:   afwijkend vlak tarief voor waterstof (None = als elektrisch)
#
# year_from / year_to zijn inclusief; None = open einde.

BIJTELLING_RULES = [
    {
        "year_from": None,
        "year_to": 2016,
        "label": "t/m 2016",
        "standard_rate": 25,
        "electric_rate": 0,
        "electric_cap": None,
        "electric_rate_above_cap": None,
        "hydrogen_rate": None,
    },
    {
        "year_from": 2017,
        "year_to": 2018,
        "label": "2017-2018",
        "standard_rate": 22,
        "electric_rate": 4,
        "electric_cap": None,
        "electric_rate_above_cap": None,
        "hydrogen_rate": None,
    },
    {
        "year_from": 2019,
        "year_to": 2019,
        "label": "2019",
        "standard_rate": 22,
        "electric_rate": 4,
        "electric_cap": 50000,
        "electric_rate_above_cap": 22,
        "hydrogen_rate": None,
    },
    {
        "year_from": 2020,
        "year_to": 2020,
        "label": "2020",
        "standard_rate": 22,
        "electric_rate": 8,
        "electric_cap": 45000,
        "electric_rate_above_cap": 22,
        "hydrogen_rate": None,
    },
    {
        "year_from": 2021,
        "year_to": 2021,
        "label": "2021",
        "standard_rate": 22,
        "electric_rate": 12,
        "electric_cap": 40000,
        "electric_rate_above_cap": 22,
        "hydrogen_rate": None,
    },
    {
        "year_from": 2022,
        "year_to": 2022,
        "label": "2022",
        "standard_rate": 22,
        "electric_rate": 16,
        "electric_cap": 35000,
        "electric_rate_above_cap": 22,
        "hydrogen_rate": None,
    },
    {
        "year_from": 2023,
        "year_to": 2024,
        "label": "2023-2024",
        "standard_rate": 22,
        "electric_rate": 16,
        "electric_cap": 30000,
        "electric_rate_above_cap": 22,
        "hydrogen_rate": None,
    },
    {
        "year_from": 2025,
        "year_to": 2025,
        "label": "2025",
        "standard_rate": 22,
        "electric_rate": 17,
        "electric_cap": 30000,
        "electric_rate_above_cap": 22,
        "hydrogen_rate": None,
    },
    {
        "year_from": 2026,
        "year_to": None,
        "label": "vanaf 2026",
        "standard_rate": 22,
        "electric_rate": 22,
        "electric_cap": None,
        "electric_rate_above_cap": None,
        "hydrogen_rate": 17,  # Waterstof houdt 17% als uitzondering
    },
]

# Leeftijdsgrenzen (jaren sinds DET)
YOUNGTIMER_MIN_AGE = 15
YOUNGTIMER_MAX_AGE = 30

# Youngtimers: 35% over de dagwaarde
YOUNGTIMER_RATE = 35
YOUNGTIMER_MARKET_VALUE_FACTOR = 0.6  # Dagwaarde = catalogusprijs * 0.6 zonder betere schatting

# 60 maanden vast + 1 maand aanloop
PROTECTION_PERIOD_MONTHS = 61

# =============================================================================
# KOSTEN DEFAULTS
# =============================================================================

# Formulier defaults (zonder kentekengegevens)
DEFAULT_INPUTS = {
    "purchase_price": 25000,
    "residual_value": 10000,
    "ownership_years": 5,
    "annual_distance": 15000,
    "business_share_percent": 60,
    "fuel_unit_price": 1.85,
    "insurance_tier": "comprehensive",
    "marginal_tax_rate_percent": 37,  # Gemiddeld Nederlands belastingtarief
}

# Verzekering per jaar (WA / WA+ / Allrisk)
INSURANCE_BASE = {
    "liability": 600,
    "liability_plus": 800,
    "comprehensive": 1200,
}
# Formulierwaarden uit de oude calculator
INSURANCE_ALIASES = {
    "wa": "liability",
    "wa-plus": "liability_plus",
    "allrisk": "comprehensive",
}
INSURANCE_REFERENCE_PRICE = 25000
INSURANCE_MAX_FACTOR = 2.0

COST_DEFAULTS = {
    "weight_kg": 1500,             # Zonder RDW gewicht
    "vehicle_age_years": 5,        # Onderhoud en reparaties zonder bouwjaar
    "mrb_per_100kg_month": 8,      # MRB schatting: €8 per 100 kg per maand
    "mrb_electric_discount": 0.25, # Elektrisch en waterstof: 25% korting
    "apk_fee": 50,                 # APK per jaar
    "apk_exempt_max_age": 3,       # APK-plicht vanaf 4 jaar
    "maintenance_base": 800,
    "maintenance_age_factor": 0.10,
    "maintenance_reference_km": 15000,
    "tire_set_price": 800,
    "tire_lifespan_km": 50000,
    "repair_base": 300,
    "repair_growth": 1.2,
    "repair_growth_after_years": 5,
}

# Verbruik per 100 km zonder RDW gegevens
DEFAULT_CONSUMPTION = 7.0  # liter
DEFAULT_CONSUMPTION_BY_FUEL = {
    "electric": 18.0,  # kWh
}

# Brandstofprijs per eenheid (liter of kWh)
DEFAULT_FUEL_PRICES = {
    "petrol": 1.85,
    "diesel": 1.65,
    "electric": 0.35,
    "lpg": 0.85,
    "cng": 1.25,
    "hybrid": 1.75,
    "plugin_hybrid": 1.75,
}
DEFAULT_FUEL_PRICE = 1.75

# =============================================================================
# PRIJSSCHATTING (invullen na kentekencheck)
# =============================================================================

VEHICLE_DEPRECIATION_PER_YEAR = 0.12
VEHICLE_MIN_VALUE_FACTOR = 0.2
RESIDUAL_VALUE_FACTOR = 0.6

BRAND_PRICE_ESTIMATES = {
    "BMW": 45000,
    "MERCEDES-BENZ": 50000,
    "AUDI": 43000,
    "VOLKSWAGEN": 35000,
    "TOYOTA": 30000,
    "VOLVO": 38000,
    "FORD": 28000,
    "OPEL": 25000,
    "PEUGEOT": 27000,
    "RENAULT": 26000,
    "NISSAN": 29000,
    "HYUNDAI": 25000,
    "KIA": 24000,
    "SKODA": 26000,
    "SEAT": 25000,
}
DEFAULT_BRAND_PRICE = 30000
BRAND_DEPRECIATION_PER_YEAR = 0.10
BRAND_MIN_VALUE_FACTOR = 0.15

# =============================================================================
# BRANDSTOF OVERRIDES
# =============================================================================
# RDW levert bij sommige merken een lege of onbekende brandstof.
# Herkende volledig elektrische modellijnen worden dan elektrisch.
# model None = elk model van dit merk.
# force: merk is volledig elektrisch, wint ook van de RDW omschrijving.

FUEL_OVERRIDES = [
    {"make": "tesla", "model": None, "fuel": "electric", "force": True},
    {"make": "nissan", "model": "leaf", "fuel": "electric"},
    {"make": "bmw", "model": "i3", "fuel": "electric"},
    {"make": "volkswagen", "model": "id.", "fuel": "electric"},
    {"make": "audi", "model": "e-tron", "fuel": "electric"},
]

# =============================================================================
# RDW OPEN DATA
# =============================================================================

RDW_BASE_URL = "https://opendata.rdw.nl"

RDW_DATASETS = {
    "basic": "m9d7-ebf2",        # Gekentekende voertuigen
    "fuel": "8ys7-d773",         # Brandstof (WLTP)
    "consumption": "dqbz-ecw7",  # NEDC brandstofverbruik
    "recalls": "t3br-gjjw",      # Terugroepacties
}

RDW_CACHE_TTL_SECONDS = 5 * 60
RDW_RATE_LIMIT_DELAY = 0.1  # Seconden tussen batches
RDW_TIMEOUT = 10

# =============================================================================
# VERGELIJKEN
# =============================================================================

MAX_COMPARISONS = 6
CALCULATION_METHOD = "prive-kopen-zakelijk-gebruiken"
CALCULATION_TYPE_NAME = "Auto privé kopen + zakelijk gebruiken"
