from flask import current_app
from bloodbank import db
from bloodbank.models.hospital import Hospital
from bloodbank.models.inventory import (
    COMPONENT_MODELS, COMPONENT_TYPES, PlasmaBag, get_component_model, normalize_component_type,
)
from bloodbank.utils.cache import get_query_cache
from bloodbank.utils.errors import log_error
from sqlalchemy import and_, case, func
from sqlalchemy.exc import SQLAlchemyError
from datetime import date, timedelta
from io import StringIO
import csv
import logging

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 7

# Cache key prefixes of everything derived from cross-hospital inventory
SURPLUS_CACHE_PREFIXES = ('surplus-alerts:', 'hospitals-needing-surplus:', 'hospital-surplus:')


def inventory_cache_key(hospital_id, component_type):
    return f'{normalize_component_type(component_type).lower()}:{hospital_id}'


def _usable(model):
    """Active, unexpired bags"""
    return and_(model.active.is_(True), model.expiration_date > date.today())


# ---------------------------------------------------------------------------
# Persistence queries
# ---------------------------------------------------------------------------

def fetch_active_buckets(hospital_id, component_type):
    """
    Count and sum the active, unexpired bags of one hospital grouped by
    (blood type, rh). Plasma has no Rh dimension and is grouped by blood type only.
    """
    model = get_component_model(component_type)
    count = func.count(model.bag_id).label('count')
    total = func.sum(model.amount).label('total_amount')

    if model is PlasmaBag:
        rows = db.session.query(model.blood_type, count, total).filter(
            model.hospital_id == hospital_id,
            _usable(model)
        ).group_by(model.blood_type).order_by(model.blood_type).all()
        return [{'blood_type': r.blood_type, 'rh': '', 'count': r.count,
                 'total_amount': r.total_amount or 0} for r in rows]

    rows = db.session.query(model.blood_type, model.rh, count, total).filter(
        model.hospital_id == hospital_id,
        _usable(model)
    ).group_by(model.blood_type, model.rh).order_by(model.blood_type, model.rh).all()
    return [{'blood_type': r.blood_type, 'rh': r.rh or '', 'count': r.count,
             'total_amount': r.total_amount or 0} for r in rows]


def fetch_other_hospital_buckets(exclude_hospital_id, component_type, blood_type, rh,
                                 min_total_amount=None, max_total_amount=None):
    """
    Matching (blood type, rh) buckets of every other hospital.

    With ``min_total_amount`` only buckets strictly above it are returned, largest
    first; with ``max_total_amount`` only buckets strictly below it, smallest first.
    """
    model = get_component_model(component_type)
    total = func.sum(model.amount)

    query = db.session.query(
        Hospital.id.label('hospital_id'),
        Hospital.name.label('hospital_name'),
        func.count(model.bag_id).label('count'),
        total.label('total_amount')
    ).join(
        Hospital, model.hospital_id == Hospital.id
    ).filter(
        model.hospital_id != exclude_hospital_id,
        model.blood_type == blood_type,
        _usable(model)
    )

    if model is not PlasmaBag:
        query = query.filter(model.rh == rh)

    query = query.group_by(Hospital.id, Hospital.name)

    if min_total_amount is not None:
        query = query.having(total > min_total_amount)
    if max_total_amount is not None:
        query = query.having(total < max_total_amount)

    if max_total_amount is not None and min_total_amount is None:
        query = query.order_by(total.asc(), Hospital.id)
    else:
        query = query.order_by(total.desc(), Hospital.id)

    return [{
        'hospital_id': r.hospital_id,
        'hospital_name': r.hospital_name,
        'count': r.count,
        'total_amount': r.total_amount or 0,
    } for r in query.all()]


def fetch_record_owner(bag_id, component_type):
    model = get_component_model(component_type)
    return db.session.query(model.hospital_id).filter(model.bag_id == bag_id).scalar()


def mutate_active_flag(bag_id, component_type, hospital_id, active):
    """
    Flip the active flag of one bag owned by ``hospital_id``. Returns the number of
    rows changed; the caller commits.
    """
    model = get_component_model(component_type)
    return model.query.filter(
        model.bag_id == bag_id,
        model.hospital_id == hospital_id,
        model.active.is_(not active)
    ).update({model.active: active}, synchronize_session=False)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def get_inventory_buckets(hospital_id, component_type, cache=None):
    """
    InventoryBuckets of one hospital and component type, cached for
    INVENTORY_CACHE_TTL seconds. Errors propagate.
    """
    component_type = normalize_component_type(component_type)
    if cache is None:
        cache = get_query_cache()

    cache_key = inventory_cache_key(hospital_id, component_type)
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    buckets = [{
        'hospital_id': hospital_id,
        'component_type': component_type,
        'blood_type': row['blood_type'],
        'rh': row['rh'],
        'count': int(row['count']),
        'total_amount': int(row['total_amount']),
    } for row in fetch_active_buckets(hospital_id, component_type)]

    cache.set(cache_key, buckets, current_app.config['INVENTORY_CACHE_TTL'])
    return buckets


def aggregate(hospital_id, component_type, cache=None):
    """
    Same as get_inventory_buckets but never raises: on failure the error is
    logged and an empty list returned.
    """
    try:
        return get_inventory_buckets(hospital_id, component_type, cache)
    except Exception as e:
        db.session.rollback()
        log_error(e, 'aggregate')
        return []


def invalidate_inventory(hospital_id, component_type, cache=None):
    if cache is None:
        cache = get_query_cache()

    cache.invalidate(inventory_cache_key(hospital_id, component_type))
    cache.invalidate(f'surplus-summary:{hospital_id}')
    # Other hospitals' alerts are built from this hospital's stock too
    for prefix in SURPLUS_CACHE_PREFIXES:
        cache.invalidate(prefix)


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

def add_entry(component_type, hospital_id, donor_name, blood_type, rh, amount, expiration_date):
    component_type = normalize_component_type(component_type)
    model = COMPONENT_MODELS[component_type]

    bag = model(
        donor_name=donor_name,
        blood_type=blood_type,
        rh='' if model is PlasmaBag else rh,
        amount=amount,
        expiration_date=expiration_date,
        hospital_id=hospital_id,
        active=True
    )

    try:
        db.session.add(bag)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        app_error = log_error(e, f'Add {component_type} entry')
        return {'success': False, 'error': app_error.message, 'details': app_error.details,
                'error_type': app_error.error_type}

    invalidate_inventory(hospital_id, component_type)
    logger.info(f"Added {component_type} bag {bag.bag_id} for hospital {hospital_id}")
    return {'success': True, 'bag_id': bag.bag_id}


def list_entries(hospital_id, component_type, include_inactive=False):
    model = get_component_model(component_type)
    query = model.query.filter(model.hospital_id == hospital_id)
    if not include_inactive:
        query = query.filter(model.active.is_(True))
    return [bag.to_dict() for bag in query.order_by(model.expiration_date, model.bag_id).all()]


def list_deleted_entries(hospital_id, component_type=None):
    """
    Soft-deleted entries of one or all component types, latest expiration first
    """
    types = [normalize_component_type(component_type)] if component_type else COMPONENT_TYPES

    entries = []
    for name in types:
        model = COMPONENT_MODELS[name]
        bags = model.query.filter(
            model.hospital_id == hospital_id,
            model.active.is_(False)
        ).order_by(model.expiration_date.desc()).all()
        entries.extend(bag.to_dict() for bag in bags)
    return entries


def search_donors(query, include_inactive=False):
    """
    Search every hospital's bags by bag id (numeric query) or donor name
    """
    query = (query or '').strip()
    if not query:
        return []

    results = []
    for model in COMPONENT_MODELS.values():
        q = db.session.query(model, Hospital.name, Hospital.contact_phone).join(
            Hospital, model.hospital_id == Hospital.id
        )

        if query.isdecimal():
            q = q.filter(model.bag_id == int(query))
        else:
            q = q.filter(model.donor_name.icontains(query, autoescape=True))

        if not include_inactive:
            q = q.filter(model.active.is_(True))

        for bag, hospital_name, hospital_phone in q.order_by(model.bag_id).all():
            data = bag.to_dict()
            data['hospital_name'] = hospital_name
            data['hospital_contact_phone'] = hospital_phone
            results.append(data)

    return results


# ---------------------------------------------------------------------------
# Analysis and export
# ---------------------------------------------------------------------------

def _analysis_filters(model, hospital_id, blood_type, rh, expiration_status,
                      start_date, end_date, all_hospitals):
    today = date.today()
    filters = [model.active.is_(True)]

    if not all_hospitals:
        filters.append(model.hospital_id == hospital_id)
    if blood_type:
        filters.append(model.blood_type == blood_type)
    if rh and model is not PlasmaBag:
        filters.append(model.rh == rh)

    if expiration_status == 'valid':
        filters.append(model.expiration_date > today)
    elif expiration_status == 'expired':
        filters.append(model.expiration_date <= today)
    elif expiration_status == 'expiring-soon':
        filters.append(model.expiration_date > today)
        filters.append(model.expiration_date <= today + timedelta(days=EXPIRING_SOON_DAYS))

    if start_date:
        filters.append(model.expiration_date >= start_date)
    if end_date:
        filters.append(model.expiration_date <= end_date)

    return filters


def analyze_inventory(hospital_id, component_type='all', blood_type=None, rh=None,
                      expiration_status='valid', start_date=None, end_date=None,
                      all_hospitals=False):
    """
    Inventory statistics for the data-analysis dashboard: overall counts, a
    per-component and per-blood-type breakdown, and optionally per hospital.
    """
    if not component_type or component_type == 'all':
        types = COMPONENT_TYPES
    else:
        types = [normalize_component_type(component_type)]

    today = date.today()
    soon = today + timedelta(days=EXPIRING_SOON_DAYS)

    summary = {
        'total_count': 0,
        'valid_count': 0,
        'expired_count': 0,
        'expiring_soon_count': 0,
        'total_amount': 0,
        'by_type': [],
    }
    by_blood_type = []
    by_hospital = {}

    for name in types:
        model = COMPONENT_MODELS[name]
        filters = _analysis_filters(model, hospital_id, blood_type, rh, expiration_status,
                                    start_date, end_date, all_hospitals)

        stats = db.session.query(
            func.count(model.bag_id).label('total_count'),
            func.sum(case((model.expiration_date > today, 1), else_=0)).label('valid_count'),
            func.sum(case((model.expiration_date <= today, 1), else_=0)).label('expired_count'),
            func.sum(case((and_(model.expiration_date > today,
                                model.expiration_date <= soon), 1), else_=0)).label('expiring_soon_count'),
            func.sum(model.amount).label('total_amount')
        ).filter(*filters).one()

        total_count = stats.total_count or 0
        summary['total_count'] += total_count
        summary['valid_count'] += stats.valid_count or 0
        summary['expired_count'] += stats.expired_count or 0
        summary['expiring_soon_count'] += stats.expiring_soon_count or 0
        summary['total_amount'] += stats.total_amount or 0

        if total_count:
            summary['by_type'].append({
                'type': name,
                'count': total_count,
                'total_amount': stats.total_amount or 0,
            })

        group_columns = [model.blood_type] if model is PlasmaBag else [model.blood_type, model.rh]
        rows = db.session.query(
            *group_columns,
            func.count(model.bag_id).label('count'),
            func.sum(model.amount).label('total_amount')
        ).filter(*filters).group_by(*group_columns).order_by(*group_columns).all()

        for row in rows:
            by_blood_type.append({
                'type': name,
                'blood_type': row.blood_type,
                'rh': '' if model is PlasmaBag else row.rh,
                'count': row.count,
                'total_amount': row.total_amount or 0,
            })

        if all_hospitals:
            hospital_rows = db.session.query(
                Hospital.id, Hospital.name,
                func.count(model.bag_id).label('count'),
                func.sum(model.amount).label('total_amount')
            ).join(Hospital, model.hospital_id == Hospital.id).filter(
                *filters
            ).group_by(Hospital.id, Hospital.name).all()

            for row in hospital_rows:
                entry = by_hospital.setdefault(row.id, {
                    'hospital_id': row.id,
                    'hospital_name': row.name,
                    'count': 0,
                    'total_amount': 0,
                })
                entry['count'] += row.count
                entry['total_amount'] += row.total_amount or 0

    for item in summary['by_type']:
        item['percentage'] = round(item['count'] / summary['total_count'], 4)

    hospitals = sorted(by_hospital.values(), key=lambda h: h['count'], reverse=True)
    for item in hospitals:
        item['percentage'] = round(item['count'] / summary['total_count'], 4) if summary['total_count'] else 0

    return {
        'summary': summary,
        'by_blood_type': by_blood_type,
        'by_hospital': hospitals,
    }


def export_entries_csv(hospital_id, component_type=None):
    """
    CSV dump of a hospital's entries (active and deleted) of one or all component types
    """
    types = [normalize_component_type(component_type)] if component_type else COMPONENT_TYPES

    si = StringIO()
    cw = csv.writer(si)

    # Write headers
    cw.writerow(['Type', 'Bag ID', 'Donor Name', 'Blood Type', 'Rh', 'Amount (ml)',
                 'Expiration Date', 'Status'])

    # Write data
    for name in types:
        model = COMPONENT_MODELS[name]
        bags = model.query.filter(model.hospital_id == hospital_id).order_by(model.bag_id).all()
        for bag in bags:
            cw.writerow([
                name,
                bag.bag_id,
                bag.donor_name,
                bag.blood_type,
                bag.rh or '',
                bag.amount,
                bag.expiration_date.strftime('%Y-%m-%d'),
                'Active' if bag.active else 'Deleted'
            ])

    output = si.getvalue()
    si.close()
    return output
