from bloodbank import db
from bloodbank.models.hospital import Hospital
from bloodbank.models.inventory import PlasmaBag, SurplusTransfer, get_component_model, normalize_component_type
from bloodbank.utils.email import send_transfer_notification
from bloodbank.utils.errors import ErrorType, log_error
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)


def record_surplus_transfer(from_hospital_id, to_hospital_id, component_type, blood_type, rh,
                            amount, units, notes=None):
    """
    Record a transfer of surplus stock to another hospital and notify the receiver
    """
    component_type = normalize_component_type(component_type)

    if from_hospital_id == to_hospital_id:
        return {'success': False, 'error': 'Cannot transfer to your own hospital',
                'error_type': ErrorType.VALIDATION}

    from_hospital = db.session.get(Hospital, from_hospital_id)
    to_hospital = db.session.get(Hospital, to_hospital_id)
    if from_hospital is None or to_hospital is None:
        return {'success': False, 'error': 'Hospital not found', 'error_type': ErrorType.NOT_FOUND}

    transfer = SurplusTransfer(
        from_hospital_id=from_hospital_id,
        to_hospital_id=to_hospital_id,
        component_type=component_type,
        blood_type=blood_type,
        rh='' if get_component_model(component_type) is PlasmaBag else (rh or ''),
        amount=amount,
        units=units,
        notes=notes
    )

    try:
        db.session.add(transfer)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        app_error = log_error(e, 'Record surplus transfer')
        return {'success': False, 'error': app_error.message, 'details': app_error.details,
                'error_type': app_error.error_type}

    logger.info(f"Recorded {component_type} transfer {transfer.id} from hospital {from_hospital_id} "
                f"to hospital {to_hospital_id}")

    # Notification failures never undo the transfer
    notified = send_transfer_notification(transfer, from_hospital, to_hospital)

    return {'success': True, 'transfer_id': transfer.id, 'notified': notified}


def get_transfer_history(hospital_id):
    transfers = SurplusTransfer.query.filter(
        or_(SurplusTransfer.from_hospital_id == hospital_id,
            SurplusTransfer.to_hospital_id == hospital_id)
    ).order_by(SurplusTransfer.transfer_date.desc(), SurplusTransfer.id.desc()).all()

    return [transfer.to_dict(hospital_id) for transfer in transfers]
