import io
import logging
from datetime import datetime

import qrcode
from flask import Blueprint, Flask, Response, current_app, jsonify, request, send_file

import cash
import registry
import reports
import stays
import storage
from config import Config
from errors import NotFoundError, ParkingError, ValidationError
from models import db, Stay

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=app.config['LOG_LEVEL'])

    db.init_app(app)
    app.register_blueprint(api)
    app.register_error_handler(ParkingError, handle_parking_error)

    # Create tables and seed the default dataset on startup
    with app.app_context():
        storage.load_dataset(db.session, app.config['DEFAULT_TOTAL_SPOTS'])

    return app


def handle_parking_error(error):
    if error.status_code >= 500:
        logger.error('%s: %s', type(error).__name__, error.message)
    return jsonify({'error': error.message}), error.status_code


# ============================================
# JSON helpers
# ============================================

def _iso(value):
    return value.isoformat() if value else None


def stay_json(stay):
    return {
        'id': stay.id,
        'plate': stay.vehicle.plate,
        'entry_at': _iso(stay.entry_at),
        'exit_at': _iso(stay.exit_at),
        'minutes': stay.minutes,
        'amount': stay.amount,
        'rule_desc': stay.rule_desc,
        'open': stay.is_open,
    }


def payment_json(payment):
    return {
        'id': payment.id,
        'stay_id': payment.stay_id,
        'paid_at': _iso(payment.paid_at),
        'method': payment.method,
        'amount': payment.amount,
        'cash_shift_id': payment.cash_shift_id,
        'plate': payment.stay.vehicle.plate,
        'rule_desc': payment.stay.rule_desc,
    }


def shift_json(shift):
    if shift is None:
        return None
    return {
        'id': shift.id,
        'opened_at': _iso(shift.opened_at),
        'closed_at': _iso(shift.closed_at),
        'initial_amount': shift.initial_amount,
        'open': shift.is_open,
    }


def client_json(client):
    return {
        'id': client.id,
        'name': client.name,
        'phone': client.phone,
        'notes': client.notes,
        'is_vip': client.is_vip,
    }


def vehicle_json(vehicle):
    return {
        'id': vehicle.id,
        'plate': vehicle.plate,
        'model': vehicle.model,
        'color': vehicle.color,
        'client_id': vehicle.client_id,
        'client_name': vehicle.client.name if vehicle.client else None,
    }


def rule_json(rule):
    return {
        'id': rule.id,
        'name': rule.name,
        'active': rule.active,
        'first_hour_value': rule.first_hour_value,
        'fraction_minutes': rule.fraction_minutes,
        'fraction_value': rule.fraction_value,
        'daily_max': rule.daily_max,
    }


def _payload():
    return request.get_json(silent=True) or {}


def _number(data, key, default=None, cast=float):
    value = data.get(key, default)
    if value is None or value == '':
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {key}: {value!r}')


# ============================================
# Account & settings API
# ============================================

@api.route('/login', methods=['POST'])
def login():
    """Check a username and password against the user accounts."""
    data = _payload()
    if not registry.check_credentials(db.session, data.get('username'), data.get('password')):
        return jsonify({'error': 'Invalid username or password'}), 401
    return jsonify({'username': registry.as_text(data.get('username')).strip()})


@api.route('/settings', methods=['GET'])
def get_settings():
    """Get the lot settings."""
    settings = storage.get_settings(db.session)
    return jsonify({'total_spots': settings.total_spots})


@api.route('/settings', methods=['PUT'])
def update_settings():
    """Update the total number of spots."""
    total_spots = _number(_payload(), 'total_spots', cast=int)
    if total_spots is None:
        return jsonify({'error': 'Missing total_spots'}), 400
    settings = storage.update_total_spots(db.session, total_spots)
    return jsonify({'total_spots': settings.total_spots})


@api.route('/reset', methods=['POST'])
def reset():
    """Drop all records and restore the default dataset."""
    storage.reset_dataset(db.session, current_app.config['DEFAULT_TOTAL_SPOTS'])
    return jsonify({'message': 'Dataset reset'})


@api.route('/dashboard', methods=['GET'])
def dashboard():
    """Get occupancy and revenue figures for a given date."""
    date_str = request.args.get('date')
    target_date = None
    if date_str:
        try:
            target_date = datetime.strptime(date_str, '%Y-%m-%d').date()
        except ValueError:
            return jsonify({'error': 'Invalid date format'}), 400
    return jsonify(reports.dashboard(db.session, target_date))


# ============================================
# Entry / exit API
# ============================================

@api.route('/entry', methods=['POST'])
def entry():
    """Register a vehicle entry, reusing its open stay if it is inside."""
    stay = stays.record_entry(db.session, _payload().get('plate'))
    return jsonify(stay_json(stay)), 201


@api.route('/stays/open', methods=['GET'])
def list_open_stays():
    """List vehicles currently inside, newest entry first."""
    return jsonify([stay_json(s) for s in stays.open_stays(db.session)])


@api.route('/stays/<int:stay_id>/ticket.png', methods=['GET'])
def stay_ticket(stay_id):
    """Render the entry ticket of a stay as a QR code PNG."""
    stay = db.session.get(Stay, stay_id)
    if stay is None:
        raise NotFoundError(f'Stay {stay_id} not found')

    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(f'{stay.id};{stay.vehicle.plate};{stay.entry_at.isoformat()}')
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer)
    buffer.seek(0)
    return send_file(buffer, mimetype='image/png')


@api.route('/quote', methods=['GET'])
def quote():
    """Preview the fee of an open stay without closing it."""
    plate = request.args.get('plate')
    if not plate:
        return jsonify({'error': 'Missing plate parameter'}), 400
    stay, fee = stays.quote(db.session, plate)
    return jsonify({
        'stay': stay_json(stay),
        'minutes': fee.minutes,
        'amount': fee.amount,
        'description': fee.description,
    })


@api.route('/exit', methods=['POST'])
def exit_parking():
    """Close the open stay of a plate and record its payment."""
    data = _payload()
    stay, payment = stays.record_exit(db.session, data.get('plate'), data.get('method', 'cash'))
    return jsonify({
        'message': 'Exit confirmed',
        'stay': stay_json(stay),
        'payment': payment_json(payment),
    })


# ============================================
# Clients, vehicles & price rules API
# ============================================

@api.route('/clients', methods=['GET'])
def list_clients():
    """List all clients, newest first."""
    return jsonify([client_json(c) for c in registry.list_clients(db.session)])


@api.route('/clients', methods=['POST'])
def create_client():
    """Create a new client."""
    data = _payload()
    client = registry.create_client(
        db.session,
        data.get('name'),
        phone=data.get('phone', ''),
        notes=data.get('notes', ''),
        is_vip=bool(data.get('is_vip', False)),
    )
    return jsonify(client_json(client)), 201


@api.route('/clients/<int:client_id>', methods=['DELETE'])
def delete_client(client_id):
    """Delete a client, keeping its vehicles without owner."""
    registry.delete_client(db.session, client_id)
    return jsonify({'message': 'Client deleted successfully'})


@api.route('/vehicles', methods=['GET'])
def list_vehicles():
    """List all vehicles with their client names."""
    return jsonify([vehicle_json(v) for v in registry.list_vehicles(db.session)])


@api.route('/vehicles', methods=['POST'])
def create_vehicle():
    """Register a vehicle, or return the one already using the plate."""
    data = _payload()
    vehicle = registry.create_vehicle(
        db.session,
        data.get('plate'),
        model=data.get('model', ''),
        color=data.get('color', ''),
        client_id=_number(data, 'client_id', cast=int),
    )
    if vehicle is None:
        existing = registry.find_vehicle(db.session, data.get('plate'))
        return jsonify(vehicle_json(existing)), 200
    return jsonify(vehicle_json(vehicle)), 201


@api.route('/price-rules', methods=['GET'])
def list_price_rules():
    """List all pricing rules, newest first."""
    return jsonify([rule_json(r) for r in registry.list_price_rules(db.session)])


@api.route('/price-rules', methods=['POST'])
def create_price_rule():
    """Create a new active pricing rule."""
    data = _payload()
    first_hour_value = _number(data, 'first_hour_value')
    if first_hour_value is None:
        return jsonify({'error': 'Missing first_hour_value'}), 400
    fraction_minutes = data.get('fraction_minutes')
    if fraction_minutes is None or fraction_minutes == '':
        fraction_minutes = 15
    rule = registry.create_price_rule(
        db.session,
        data.get('name'),
        first_hour_value,
        fraction_minutes=fraction_minutes,
        fraction_value=_number(data, 'fraction_value', 0.0),
        daily_max=_number(data, 'daily_max'),
    )
    return jsonify(rule_json(rule)), 201


@api.route('/price-rules/<int:rule_id>/toggle', methods=['POST'])
def toggle_price_rule(rule_id):
    """Activate or deactivate a pricing rule."""
    rule = registry.toggle_rule_active(db.session, rule_id)
    return jsonify(rule_json(rule))


# ============================================
# Cash register API
# ============================================

@api.route('/cash', methods=['GET'])
def cash_status():
    """Get the open cash shift with its payments and total."""
    summary = cash.shift_summary(db.session)
    return jsonify({
        'shift': shift_json(summary['shift']),
        'payments': [payment_json(p) for p in summary['payments']],
        'total': summary['total'],
    })


@api.route('/cash/open', methods=['POST'])
def open_cash():
    """Open a cash shift unless one is already open."""
    initial_amount = _number(_payload(), 'initial_amount', 0.0)
    shift = cash.open_shift(db.session, initial_amount)
    return jsonify(shift_json(shift))


@api.route('/cash/close', methods=['POST'])
def close_cash():
    """Close the open cash shift, if any."""
    shift = cash.close_shift(db.session)
    if shift is None:
        return jsonify({'message': 'No open cash shift', 'shift': None})
    return jsonify({'message': 'Cash shift closed', 'shift': shift_json(shift)})


@api.route('/export.csv', methods=['GET'])
def export_csv():
    """Download all payments as a CSV file."""
    content = reports.export_payments_csv(db.session)
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=parking_export.csv'},
    )


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', debug=True)
