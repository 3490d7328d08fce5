# ordering/utils/net.py

def parse_coord(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def clamp_lat_lng(lat, lng):
    if lat is not None and not (-90.0 <= lat <= 90.0):
        lat = None
    if lng is not None and not (-180.0 <= lng <= 180.0):
        lng = None
    return lat, lng
