from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required
from bloodbank.forms.inventory_forms import SurplusTransferForm
from bloodbank.utils import own_hospital_id
from bloodbank.utils.errors import STATUS_CODES, form_error
from bloodbank.utils.surplus import (
    find_hospitals_needing_surplus, find_surplus_alerts, get_hospital_surplus, summarize,
)
from bloodbank.utils.transfers import get_transfer_history, record_surplus_transfer

surplus = Blueprint('surplus', __name__)


@surplus.route('/alerts')
@login_required
def alerts():
    hospital_id = own_hospital_id(request.args.get('hospital_id'))
    return jsonify({'success': True, 'alerts': find_surplus_alerts(hospital_id)})


@surplus.route('/needed')
@login_required
def hospitals_needing():
    hospital_id = own_hospital_id(request.args.get('hospital_id'))
    return jsonify({'success': True, 'hospitals': find_hospitals_needing_surplus(hospital_id)})


@surplus.route('/hospital')
@login_required
def hospital_surplus():
    hospital_id = own_hospital_id(request.args.get('hospital_id'))
    return jsonify({'success': True, 'surplus': get_hospital_surplus(hospital_id)})


@surplus.route('/summary')
@login_required
def summary():
    hospital_id = own_hospital_id(request.args.get('hospital_id'))
    return jsonify({'success': True, 'summary': summarize(hospital_id)})


@surplus.route('/transfer', methods=['POST'])
@login_required
def transfer():
    form = SurplusTransferForm()
    if not form.validate_on_submit():
        raise form_error(form)

    from_hospital_id = own_hospital_id((request.get_json(silent=True) or {}).get('from_hospital_id'))

    result = record_surplus_transfer(
        from_hospital_id,
        form.to_hospital_id.data,
        form.component_type.data,
        form.blood_type.data,
        form.rh.data,
        form.amount.data,
        form.units.data,
        notes=form.notes.data or None
    )

    if not result['success']:
        status = STATUS_CODES.get(result.pop('error_type'), 500)
        current_app.logger.warning(f"Transfer from hospital {from_hospital_id} rejected: {result['error']}")
        return jsonify(result), status

    return jsonify(result), 201


@surplus.route('/history')
@login_required
def history():
    hospital_id = own_hospital_id(request.args.get('hospital_id'))
    return jsonify({'success': True, 'transfers': get_transfer_history(hospital_id)})
