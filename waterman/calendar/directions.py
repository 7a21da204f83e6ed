# ABOUTME: Compass helpers converting bearings to 16-point cardinal names
# ABOUTME: Wind is stored as the "from" bearing and displayed as where it blows to

CARDINALS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]


def degrees_to_cardinal(degrees: float) -> str:
    """Nearest 16-point compass name; any bearing is normalized to [0, 360)."""
    normalized = degrees % 360
    index = int(normalized / 22.5 + 0.5) % 16
    return CARDINALS[index]


def display_wind_cardinal(degrees: float) -> str:
    """Cardinal the wind blows towards (stored bearing rotated 180°)."""
    return degrees_to_cardinal((degrees + 180) % 360)
