from flask import current_app
from bloodbank.utils.cache import get_query_cache


def get_hospital(hospital_id, cache=None):
    """
    Helper function to get hospital details, cached for HOSPITAL_CACHE_TTL seconds
    """
    from bloodbank import db
    from bloodbank.models.hospital import Hospital

    if cache is None:
        cache = get_query_cache()
    cache_key = f'hospital:{hospital_id}'
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    hospital = db.session.get(Hospital, hospital_id)
    if hospital is None:
        return None

    data = hospital.to_dict()
    cache.set(cache_key, data, current_app.config['HOSPITAL_CACHE_TTL'])
    return data


def own_hospital_id(requested_id=None):
    """
    Hospital id of the logged-in admin. A client-supplied id is only accepted
    when it names that same hospital.
    """
    from flask_login import current_user
    from bloodbank.utils.errors import AppError, ErrorType

    hospital_id = current_user.hospital_id
    if requested_id not in (None, '') and str(requested_id) != str(hospital_id):
        current_app.logger.warning(f"Admin {current_user.id} requested data of hospital {requested_id}")
        raise AppError("You don't have access to this hospital", ErrorType.AUTHENTICATION)
    return hospital_id
