"""
Location utilities for customer geotagging and field staff tracking
"""
from math import radians, cos, sin, asin, sqrt
from errors import ValidationError

EARTH_RADIUS_METERS = 6371000
DEFAULT_NEARBY_RADIUS_METERS = 500


def calculate_distance(lat1, lon1, lat2, lon2):
    """
    Calculate the great circle distance between two points
    on the earth (specified in decimal degrees)

    Returns distance in meters
    """
    # Convert decimal degrees to radians
    lon1, lat1, lon2, lat2 = map(radians, [lon1, lat1, lon2, lat2])

    # Haversine formula
    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = sin(dlat/2)**2 + cos(lat1) * cos(lat2) * sin(dlon/2)**2
    c = 2 * asin(sqrt(a))
    return c * EARTH_RADIUS_METERS


def validate_coordinates(latitude, longitude, accuracy=None):
    """
    Parse and range-check a position fix posted by the client.

    Returns:
        (latitude, longitude, accuracy) as floats; accuracy may be None
    """
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        raise ValidationError('Location data not captured. Please enable location services and try again.')

    if not -90 <= lat <= 90:
        raise ValidationError(f'Invalid latitude {lat}. Must be between -90 and 90.')
    if not -180 <= lng <= 180:
        raise ValidationError(f'Invalid longitude {lng}. Must be between -180 and 180.')

    acc = None
    if accuracy not in (None, ''):
        try:
            acc = float(accuracy)
        except (TypeError, ValueError):
            raise ValidationError('Invalid accuracy value.')
        if acc < 0:
            raise ValidationError('Accuracy cannot be negative.')

    return lat, lng, acc


def customers_within(customers, latitude, longitude, radius_m=DEFAULT_NEARBY_RADIUS_METERS):
    """
    Filter geotagged customers to those within `radius_m` of a point.

    Returns:
        List of (customer, distance_m) sorted nearest first
    """
    nearby = []
    for customer in customers:
        if customer.latitude is None or customer.longitude is None:
            continue
        distance = calculate_distance(latitude, longitude, customer.latitude, customer.longitude)
        if distance <= radius_m:
            nearby.append((customer, distance))
    nearby.sort(key=lambda pair: pair[1])
    return nearby
