from flask import Blueprint, request, jsonify, send_file, current_app
from flask_login import login_required
from bloodbank.forms.inventory_forms import AddEntryForm
from bloodbank.models.inventory import normalize_component_type
from bloodbank.utils import own_hospital_id
from bloodbank.utils.errors import STATUS_CODES, AppError, ErrorType, form_error
from bloodbank.utils.inventory import (
    add_entry, aggregate, analyze_inventory, export_entries_csv, list_deleted_entries,
    list_entries, search_donors,
)
from datetime import datetime
from io import BytesIO

inventory = Blueprint('inventory', __name__)

EXPIRATION_STATUSES = ('all', 'valid', 'expired', 'expiring-soon')


def _flag(name):
    return request.args.get(name, 'false').lower() in ('1', 'true', 'yes')


def _date_arg(name):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise AppError(f'{name}: expected a YYYY-MM-DD date', ErrorType.VALIDATION)


@inventory.route('/search')
@login_required
def search():
    query = request.args.get('q', '')
    results = search_donors(query, include_inactive=_flag('inactive'))
    return jsonify({'success': True, 'results': results})


@inventory.route('/deleted')
@login_required
def deleted_entries():
    hospital_id = own_hospital_id(request.args.get('hospital_id'))
    entries = list_deleted_entries(hospital_id, request.args.get('type'))
    return jsonify({'success': True, 'entries': entries})


@inventory.route('/analysis')
@login_required
def analysis():
    hospital_id = own_hospital_id(request.args.get('hospital_id'))

    expiration_status = request.args.get('expiration_status', 'valid')
    if expiration_status not in EXPIRATION_STATUSES:
        raise AppError(f'expiration_status: must be one of {", ".join(EXPIRATION_STATUSES)}',
                       ErrorType.VALIDATION)

    blood_type = request.args.get('blood_type', 'all')
    rh = request.args.get('rh', 'all')

    data = analyze_inventory(
        hospital_id,
        component_type=request.args.get('type', 'all'),
        blood_type=None if blood_type == 'all' else blood_type,
        rh=None if rh == 'all' else rh,
        expiration_status=expiration_status,
        start_date=_date_arg('start_date'),
        end_date=_date_arg('end_date'),
        all_hospitals=_flag('all_hospitals')
    )
    return jsonify({'success': True, **data})


@inventory.route('/export-csv')
@login_required
def export_csv():
    hospital_id = own_hospital_id(request.args.get('hospital_id'))
    component_type = request.args.get('type')
    if component_type == 'all':
        component_type = None

    output = export_entries_csv(hospital_id, component_type)
    current_app.logger.info(f"Exported inventory CSV for hospital {hospital_id}")

    return send_file(
        BytesIO(output.encode('utf-8')),
        mimetype='text/csv',
        as_attachment=True,
        download_name=f'inventory_{datetime.now().strftime("%Y%m%d_%H%M%S")}.csv'
    )


@inventory.route('/<entry_type>/buckets')
@login_required
def buckets(entry_type):
    component_type = normalize_component_type(entry_type)
    hospital_id = own_hospital_id(request.args.get('hospital_id'))
    return jsonify({'success': True, 'buckets': aggregate(hospital_id, component_type)})


@inventory.route('/<entry_type>')
@login_required
def entries(entry_type):
    component_type = normalize_component_type(entry_type)
    hospital_id = own_hospital_id(request.args.get('hospital_id'))
    return jsonify({
        'success': True,
        'entries': list_entries(hospital_id, component_type, include_inactive=_flag('inactive'))
    })


@inventory.route('/<entry_type>', methods=['POST'])
@login_required
def add(entry_type):
    component_type = normalize_component_type(entry_type)

    form = AddEntryForm()
    form.component_type = component_type
    if not form.validate_on_submit():
        raise form_error(form)

    hospital_id = own_hospital_id((request.get_json(silent=True) or {}).get('hospital_id'))

    result = add_entry(
        component_type,
        hospital_id,
        form.donor_name.data.strip(),
        form.blood_type.data,
        form.rh.data,
        form.amount.data,
        form.expiration_date.data
    )

    if not result['success']:
        status = STATUS_CODES.get(result.pop('error_type'), 500)
        return jsonify(result), status
    return jsonify(result), 201
