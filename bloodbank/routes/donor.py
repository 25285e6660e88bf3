from flask import Blueprint, request, jsonify
from flask_login import login_required
from bloodbank.forms.inventory_forms import EntryActionForm, UpdateEntryForm
from bloodbank.utils import own_hospital_id
from bloodbank.utils.errors import STATUS_CODES, form_error
from bloodbank.utils.ownership import (
    delete_entry_permanently, restore_entry, soft_delete_entry, update_entry,
)

donor = Blueprint('donor', __name__)


def _envelope(result):
    """Map an ownership/mutation result to a JSON response"""
    if result['success']:
        return jsonify(result)

    status = STATUS_CODES.get(result.pop('error_type', None), 500)
    return jsonify(result), status


def _requested_hospital():
    return own_hospital_id((request.get_json(silent=True) or {}).get('hospital_id'))


def _run_action(operation):
    form = EntryActionForm()
    if not form.validate_on_submit():
        raise form_error(form)

    hospital_id = _requested_hospital()
    return _envelope(operation(form.bag_id.data, form.entry_type.data, hospital_id))


@donor.route('/soft-delete', methods=['POST'])
@login_required
def soft_delete():
    return _run_action(soft_delete_entry)


@donor.route('/restore', methods=['POST'])
@login_required
def restore():
    return _run_action(restore_entry)


@donor.route('/delete', methods=['POST'])
@login_required
def delete():
    return _run_action(delete_entry_permanently)


@donor.route('/update', methods=['POST'])
@login_required
def update():
    form = UpdateEntryForm()
    if not form.validate_on_submit():
        raise form_error(form)

    hospital_id = _requested_hospital()
    fields = {
        'donor_name': form.donor_name.data.strip(),
        'blood_type': form.blood_type.data,
        'rh': form.rh.data,
        'amount': form.amount.data,
        'expiration_date': form.expiration_date.data,
    }

    return _envelope(update_entry(form.bag_id.data, form.entry_type.data, hospital_id, fields))
