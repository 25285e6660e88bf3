from bloodbank import db
from bloodbank.models.inventory import PlasmaBag, get_component_model, normalize_component_type
from bloodbank.utils.errors import ErrorType, log_error
from bloodbank.utils.inventory import fetch_record_owner, invalidate_inventory, mutate_active_flag
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)

PERMISSION_ERROR = "You don't have permission to modify this entry"

UPDATABLE_FIELDS = ('donor_name', 'blood_type', 'rh', 'amount', 'expiration_date')


def _failure(error, error_type, details=None):
    result = {'success': False, 'error': error, 'error_type': error_type}
    if details:
        result['details'] = details
    return result


def _database_failure(error, operation):
    db.session.rollback()
    app_error = log_error(error, operation)
    return _failure(app_error.message, app_error.error_type, app_error.details)


def verify_ownership(bag_id, component_type, hospital_id):
    """
    Check that a bag exists in its component table and belongs to ``hospital_id``
    """
    owner_id = fetch_record_owner(bag_id, component_type)

    if owner_id is None:
        return _failure('Entry not found', ErrorType.NOT_FOUND)

    if owner_id != hospital_id:
        logger.warning(f"Hospital {hospital_id} tried to modify bag {bag_id} owned by hospital {owner_id}")
        return _failure(PERMISSION_ERROR, ErrorType.AUTHENTICATION)

    return {'success': True}


def _set_active(bag_id, component_type, hospital_id, active):
    component_type = normalize_component_type(component_type)
    operation = 'Restore entry' if active else 'Soft delete entry'

    try:
        ownership = verify_ownership(bag_id, component_type, hospital_id)
        if not ownership['success']:
            return ownership

        changed = mutate_active_flag(bag_id, component_type, hospital_id, active)
        if changed == 0:
            db.session.rollback()
            message = 'Entry is not deleted' if active else 'Entry is already deleted'
            return _failure(message, ErrorType.VALIDATION)

        db.session.commit()
    except SQLAlchemyError as e:
        return _database_failure(e, operation)

    invalidate_inventory(hospital_id, component_type)
    logger.info(f"{'Restored' if active else 'Soft-deleted'} {component_type} bag {bag_id} for hospital {hospital_id}")
    return {'success': True}


def soft_delete_entry(bag_id, component_type, hospital_id):
    return _set_active(bag_id, component_type, hospital_id, False)


def restore_entry(bag_id, component_type, hospital_id):
    return _set_active(bag_id, component_type, hospital_id, True)


def update_entry(bag_id, component_type, hospital_id, fields):
    """
    Update donor/blood details of a bag owned by ``hospital_id``. Unknown fields
    are ignored and plasma never stores an Rh factor.
    """
    component_type = normalize_component_type(component_type)
    model = get_component_model(component_type)

    values = {name: fields[name] for name in UPDATABLE_FIELDS if name in fields}
    if model is PlasmaBag:
        values.pop('rh', None)

    if not values:
        return _failure('No fields to update', ErrorType.VALIDATION)

    try:
        ownership = verify_ownership(bag_id, component_type, hospital_id)
        if not ownership['success']:
            return ownership

        model.query.filter(
            model.bag_id == bag_id,
            model.hospital_id == hospital_id
        ).update(values, synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as e:
        return _database_failure(e, 'Update entry')

    invalidate_inventory(hospital_id, component_type)
    logger.info(f"Updated {component_type} bag {bag_id} for hospital {hospital_id}")
    return {'success': True}


def delete_entry_permanently(bag_id, component_type, hospital_id):
    """
    Legacy hard delete; regular removal goes through soft_delete_entry
    """
    component_type = normalize_component_type(component_type)
    model = get_component_model(component_type)

    try:
        ownership = verify_ownership(bag_id, component_type, hospital_id)
        if not ownership['success']:
            return ownership

        model.query.filter(
            model.bag_id == bag_id,
            model.hospital_id == hospital_id
        ).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as e:
        return _database_failure(e, 'Delete entry')

    invalidate_inventory(hospital_id, component_type)
    logger.info(f"Permanently deleted {component_type} bag {bag_id} for hospital {hospital_id}")
    return {'success': True}
