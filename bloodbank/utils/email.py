from flask import current_app
from flask_mail import Message
from bloodbank import mail
import logging

logger = logging.getLogger(__name__)


def send_transfer_notification(transfer, from_hospital, to_hospital):
    """
    Email the receiving hospital about a recorded surplus transfer.
    Returns True when a message was handed to the mail server.
    """
    if not to_hospital.contact_email:
        logger.info(f"Hospital {to_hospital.id} has no contact email, skipping transfer notification")
        return False

    blood_group = f"{transfer.blood_type}{transfer.rh or ''}"
    msg = Message(
        subject=f'Incoming {transfer.component_type} transfer from {from_hospital.name}',
        sender=current_app.config.get('MAIL_DEFAULT_SENDER'),
        recipients=[to_hospital.contact_email]
    )
    msg.body = f'''Dear {to_hospital.name} blood bank team,

{from_hospital.name} has recorded a surplus transfer to your hospital:

Component: {transfer.component_type}
Blood group: {blood_group}
Units: {transfer.units}
Volume: {transfer.amount} ml

{transfer.notes or ''}

Please contact {from_hospital.name}{f" at {from_hospital.contact_phone}" if from_hospital.contact_phone else ""} to arrange pickup.
'''

    try:
        mail.send(msg)
        logger.info(f"Transfer notification {transfer.id} sent to {to_hospital.contact_email}")
        return True
    except Exception as e:
        logger.error(f"Error sending transfer notification {transfer.id}: {str(e)}")
        return False
