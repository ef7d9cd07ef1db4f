BUCKET_MATERIAL = "20L Buckets"
BARREL_MATERIAL = "210L Barrels"

# 1 barrel carries as much as 10.5 buckets.
BARREL_TO_BUCKET_RATIO = 10.5

DISTANCE_RANGES: tuple[str, ...] = ("0-100Km", "101-250Km", "251-400Km", "401-600Km")
TAXONOMY = frozenset(DISTANCE_RANGES)

OTHER_ROW = "Other"
CONFLICTING_ROW = "Conflicting"

# Revenue per unit, keyed by (material, range label).
RATE_TABLE: dict[tuple[str, str], float] = {
    (BUCKET_MATERIAL, "0-100Km"): 21.0,
    (BUCKET_MATERIAL, "101-250Km"): 40.0,
    (BUCKET_MATERIAL, "251-400Km"): 68.0,
    (BUCKET_MATERIAL, "401-600Km"): 105.0,
    (BARREL_MATERIAL, "0-100Km"): 220.5,
    (BARREL_MATERIAL, "101-250Km"): 420.0,
    (BARREL_MATERIAL, "251-400Km"): 714.0,
    (BARREL_MATERIAL, "401-600Km"): 1081.5,
}

FIXED_VEHICLES: tuple[str, ...] = ("HR38AC7854", "HR38AC7243", "HR38AC0599", "HR38AC0263")
FIXED_KM = 5000
KM_COST_RATE = 31

BUCKET_CAPACITY_KG = 6000
BARREL_CAPACITY_KG = 6300

# (upper bound inclusive, label); None marks the open-ended band.
FULFILLMENT_BANDS: tuple[tuple[float | None, str], ...] = (
    (150, "0 - 150"),
    (200, "151 - 200"),
    (250, "201 - 250"),
    (300, "251 - 300"),
    (None, "300+"),
)

SECOND_TRIP_MARKER = "2nd trip"

GRANULARITIES = ("daily", "weekly", "monthly")

DASHBOARD_KEY = "all"
SNAPSHOT_SCHEMA_VERSION = 1
