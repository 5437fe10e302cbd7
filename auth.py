from flask import Blueprint, request, jsonify, current_app
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import current_user, login_required
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from models import User
from extensions import db, login_manager
from errors import BadRequest, Conflict, Unauthorized
from validators import validate_credentials, validate_preferences, validate_signup


auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

TOKEN_SALT = 'access-token'


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def generate_token(user):
    return _serializer().dumps({'id': user.id, 'email': user.email})


def verify_token(token):
    """Return the token payload, raising ``Unauthorized`` when it is bad or expired."""
    try:
        return _serializer().loads(token, max_age=current_app.config['TOKEN_MAX_AGE'])
    except SignatureExpired:
        raise Unauthorized('Token expired')
    except BadSignature:
        raise Unauthorized('Invalid token')


@login_manager.user_loader
def load_user(user_id):
    return User.find(user_id)


@login_manager.request_loader
def load_user_from_request(req):
    header = req.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    token = header.split(' ', 1)[1].strip()
    try:
        payload = verify_token(token)
    except Unauthorized as e:
        current_app.logger.debug(f"Rejected bearer token: {e.message}")
        return None
    return User.find(payload.get('id'))


@login_manager.unauthorized_handler
def unauthorized():
    raise Unauthorized()


def _auth_payload(user):
    return {'user': user.to_dict(), 'token': generate_token(user)}


@auth_bp.route('/signup', methods=['POST'])
def signup():
    email, password = validate_signup(request.get_json(silent=True))

    if User.query.filter_by(email=email).first():
        raise Conflict('User with this email already exists')

    new_user = User(
        email=email,
        password=generate_password_hash(password),
        retention_days=current_app.config['DEFAULT_RETENTION_DAYS'],
    )
    db.session.add(new_user)
    db.session.commit()
    current_app.logger.info(f"User registered: {email}")
    return jsonify({'success': True, 'data': _auth_payload(new_user)}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    email, password = validate_credentials(request.get_json(silent=True))
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password, password):
        raise Unauthorized('Invalid email or password')
    current_app.logger.info(f"User logged in: {email}")
    return jsonify({'success': True, 'data': _auth_payload(user)})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'success': True, 'data': current_user.to_dict()})


@auth_bp.route('/preferences', methods=['PUT'])
@login_required
def update_preferences():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise BadRequest('Request body must be a JSON object')
    preferences = validate_preferences(
        body.get('preferences'),
        min_days=current_app.config['MIN_RETENTION_DAYS'],
        max_days=current_app.config['MAX_RETENTION_DAYS'],
    )

    current_user.update_preferences(preferences)
    db.session.commit()
    current_app.logger.info(f"User preferences updated: {current_user.email}")
    return jsonify({'success': True, 'data': current_user.to_dict()})
