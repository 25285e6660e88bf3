"""
Surplus classification and cross-hospital surplus/shortage matching.

A bucket's total volume is classified into one of five ordered levels for
display. Matching between hospitals uses two separate, stricter cut-offs:
another hospital only counts as a transfer source above DONOR_WORTHY_ML and
only counts as in need below NEEDY_ML.
"""
from flask import current_app
from bloodbank import db
from bloodbank.models.inventory import COMPONENT_TYPES
from bloodbank.utils import get_hospital
from bloodbank.utils.cache import get_query_cache
from bloodbank.utils.errors import log_error
from bloodbank.utils.inventory import fetch_other_hospital_buckets, get_inventory_buckets

CRITICAL_LOW = 'critical-low'
LOW = 'low'
OPTIMAL = 'optimal'
SURPLUS = 'surplus'
HIGH_SURPLUS = 'high-surplus'

# Lowest to highest
SURPLUS_LEVELS = (CRITICAL_LOW, LOW, OPTIMAL, SURPLUS, HIGH_SURPLUS)

# Exclusive upper bounds (ml) of each level below high-surplus
SURPLUS_THRESHOLDS = (
    (500, CRITICAL_LOW),
    (1500, LOW),
    (3000, OPTIMAL),
    (8000, SURPLUS),
)

# Cross-hospital matching cut-offs (ml)
DONOR_WORTHY_ML = 5000
NEEDY_ML = 1500

SUMMARY_KEYS = {
    'RedBlood': 'red_blood',
    'Plasma': 'plasma',
    'Platelets': 'platelets',
}

SUMMARY_FIELDS = {
    CRITICAL_LOW: 'critical',
    LOW: 'low',
    OPTIMAL: 'optimal',
    SURPLUS: 'surplus',
    HIGH_SURPLUS: 'surplus',
}


def classify(total_amount_ml):
    if total_amount_ml is None or total_amount_ml < 0:
        return CRITICAL_LOW

    for upper_bound, level in SURPLUS_THRESHOLDS:
        if total_amount_ml < upper_bound:
            return level
    return HIGH_SURPLUS


def level_rank(level):
    return SURPLUS_LEVELS.index(level)


def _surplus_ttl():
    return current_app.config['SURPLUS_CACHE_TTL']


def _make_alert(bucket, match, your_count):
    return {
        'component_type': bucket['component_type'],
        'blood_type': bucket['blood_type'],
        'rh': bucket['rh'] or '',
        'hospital_id': match['hospital_id'],
        'hospital_name': match['hospital_name'],
        'count': int(match['count']),
        'your_count': int(your_count),
        'surplus_level': classify(match['total_amount']),
        'total_amount': int(match['total_amount']),
    }


def _own_buckets(hospital_id, cache):
    buckets = []
    for component_type in COMPONENT_TYPES:
        buckets.extend(get_inventory_buckets(hospital_id, component_type, cache))
    return buckets


def find_surplus_alerts(hospital_id, cache=None):
    """
    Other hospitals holding a large stock of what this hospital is short of.

    For every own bucket classified critical-low or low, lists the matching
    buckets of other hospitals above DONOR_WORTHY_ML, largest first. Returns an
    empty list if anything fails.
    """
    if cache is None:
        cache = get_query_cache()
    cache_key = f'surplus-alerts:{hospital_id}'

    try:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        alerts = []
        for bucket in _own_buckets(hospital_id, cache):
            if level_rank(classify(bucket['total_amount'])) > level_rank(LOW):
                continue

            matches = fetch_other_hospital_buckets(
                hospital_id,
                bucket['component_type'],
                bucket['blood_type'],
                bucket['rh'],
                min_total_amount=DONOR_WORTHY_ML
            )
            for match in matches:
                alerts.append(_make_alert(bucket, match, bucket['count']))

        cache.set(cache_key, alerts, _surplus_ttl())
        return alerts
    except Exception as e:
        db.session.rollback()
        log_error(e, 'find_surplus_alerts')
        return []


def _load_hospital_surplus(hospital_id, cache):
    cache_key = f'hospital-surplus:{hospital_id}'
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    hospital = get_hospital(hospital_id, cache)
    hospital_name = hospital['name'] if hospital else None

    surplus = []
    for bucket in _own_buckets(hospital_id, cache):
        if bucket['total_amount'] <= DONOR_WORTHY_ML:
            continue
        surplus.append({
            'hospital_id': hospital_id,
            'hospital_name': hospital_name,
            'component_type': bucket['component_type'],
            'blood_type': bucket['blood_type'],
            'rh': bucket['rh'],
            'count': bucket['count'],
            'total_amount': bucket['total_amount'],
            'surplus_level': classify(bucket['total_amount']),
        })

    cache.set(cache_key, surplus, _surplus_ttl())
    return surplus


def get_hospital_surplus(hospital_id, cache=None):
    """
    This hospital's own buckets above DONOR_WORTHY_ML
    """
    if cache is None:
        cache = get_query_cache()

    try:
        return _load_hospital_surplus(hospital_id, cache)
    except Exception as e:
        db.session.rollback()
        log_error(e, 'get_hospital_surplus')
        return []


def find_hospitals_needing_surplus(hospital_id, cache=None):
    """
    Other hospitals short of what this hospital holds in surplus.

    For every own bucket above DONOR_WORTHY_ML, lists the matching buckets of
    other hospitals below NEEDY_ML, smallest first. ``your_count`` is this
    hospital's surplus unit count. Returns an empty list if anything fails.
    """
    if cache is None:
        cache = get_query_cache()
    cache_key = f'hospitals-needing-surplus:{hospital_id}'

    try:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        results = []
        for surplus in _load_hospital_surplus(hospital_id, cache):
            matches = fetch_other_hospital_buckets(
                hospital_id,
                surplus['component_type'],
                surplus['blood_type'],
                surplus['rh'],
                max_total_amount=NEEDY_ML
            )
            for match in matches:
                results.append(_make_alert(surplus, match, surplus['count']))

        cache.set(cache_key, results, _surplus_ttl())
        return results
    except Exception as e:
        db.session.rollback()
        log_error(e, 'find_hospitals_needing_surplus')
        return []


def empty_summary():
    return {key: {'surplus': 0, 'optimal': 0, 'low': 0, 'critical': 0}
            for key in SUMMARY_KEYS.values()}


def summarize(hospital_id, cache=None):
    """
    Number of (blood type, rh) buckets per surplus band for each component type.
    critical-low counts as critical and high-surplus as surplus.
    """
    if cache is None:
        cache = get_query_cache()
    cache_key = f'surplus-summary:{hospital_id}'

    try:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        summary = empty_summary()
        for component_type in COMPONENT_TYPES:
            counts = summary[SUMMARY_KEYS[component_type]]
            for bucket in get_inventory_buckets(hospital_id, component_type, cache):
                counts[SUMMARY_FIELDS[classify(bucket['total_amount'])]] += 1

        cache.set(cache_key, summary, _surplus_ttl())
        return summary
    except Exception as e:
        db.session.rollback()
        log_error(e, 'summarize')
        return empty_summary()
