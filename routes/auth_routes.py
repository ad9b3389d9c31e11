from datetime import datetime, timezone

from flask import Blueprint, current_app, g, jsonify

from extensions import limiter
from utils import request_payload, token_required
from utils.errors import AuthError

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _login_limit() -> str:
    return current_app.config.get('LOGIN_RATE_LIMIT', '10 per minute')


@auth_bp.route('/login', methods=['POST'])
# Rate limit login attempts per client address
@limiter.limit(_login_limit)
def login():
    """Exchange the admin email/password for a signed session token."""
    data = request_payload()
    verifier = current_app.extensions['credential_verifier']
    try:
        token, user = verifier.login(data.get('email'), data.get('password'))
    except AuthError:
        current_app.logger.warning('Failed admin login for %r', data.get('email'))
        raise
    claims = verifier.verify(token)
    current_app.logger.info('Admin %s logged in', user['email'])
    return jsonify({
        'success': True,
        'message': 'Login successful',
        'token': token,
        'user': user,
        'expiresAt': datetime.fromtimestamp(claims['exp'], tz=timezone.utc).isoformat(),
    })


@auth_bp.route('/verify', methods=['POST', 'GET'])
@token_required
def verify():
    claims = g.identity
    return jsonify({
        'success': True,
        'message': 'Token is valid',
        'user': {'email': claims.get('email'), 'name': claims.get('name'), 'role': claims.get('role')},
        'expiresAt': datetime.fromtimestamp(claims['exp'], tz=timezone.utc).isoformat(),
    })
