"""
H3 helpers used when persisting incidents.
"""

try:
    import h3  # python-h3
except Exception as e:
    raise RuntimeError("python-h3 is required. Install with: pip install h3") from e


def point_to_hex(lat: float, lng: float, resolution: int = 9) -> str:
    """
    Return the H3 hex ID for (lat, lng) at the given resolution.
    Compatible with h3<4 and h3>=4.
    """
    try:  # h3 >= 4.x
        return h3.latlng_to_cell(lat, lng, resolution)
    except AttributeError:  # h3 < 4.x
        return h3.geo_to_h3(lat, lng, resolution)
