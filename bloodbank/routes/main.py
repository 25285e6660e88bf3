from flask import Blueprint, jsonify
from bloodbank import db
from bloodbank.utils.errors import log_error
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

main = Blueprint('main', __name__)


@main.route('/health')
def health():
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        db.session.rollback()
        app_error = log_error(e, 'Health check')
        return jsonify({'success': False, 'database': 'unavailable', 'error': app_error.message}), 503

    return jsonify({'success': True, 'database': 'ok'})
