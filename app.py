"""
Student Feedback Portal - Flask Application
JSON API for student sign-up/login, feedback submission with AI sentiment
classification, and admin statistics and analytics
"""

import os
from datetime import datetime, timedelta, timezone
from functools import wraps
from time import perf_counter
import logging
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify, request, session
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import (
    LoginManager,
    UserMixin,
    login_user,
    logout_user,
    login_required,
    current_user,
)
from flask_wtf.csrf import CSRFError, CSRFProtect, generate_csrf
from werkzeug.exceptions import HTTPException
import bleach
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from config import DEFAULT_ADMIN_EMAIL, Config
from errors import AccessDenied, DataServiceError, PortalError, UnexpectedFailure, ValidationFailure
from schemas import FeedbackSubmission, LoginRequest, SignupRequest, parse_payload
from services.analytics import analyze_feedback, sentiment_stats
from services.reconciliation import is_reserved_admin, reconcile_user
from services.sentiment import SentimentClassifier
from services.supabase_backend import SupabaseBackend

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(Config)
app.config.setdefault('SESSION_COOKIE_HTTPONLY', True)
app.config.setdefault('SESSION_COOKIE_SAMESITE', 'Lax')
app.config.setdefault('SESSION_COOKIE_SECURE', not app.config.get('DEBUG', False))

# Initialize CSRF protection; JSON clients send the token as X-CSRFToken
csrf = CSRFProtect(app)

# Initialize basic rate limiting
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=app.config.get('RATELIMIT_STORAGE_URI', 'memory://'),
    strategy='fixed-window',
    default_limits=["200 per day", "50 per hour"],
)
limiter.init_app(app)

@limiter.request_filter
def _rate_limit_exempt_for_tests():
    return app.config.get('TESTING', False)

os.makedirs(app.config.get('LOG_DIR', 'logs'), exist_ok=True)
_file_handler = RotatingFileHandler(
    os.path.join(app.config.get('LOG_DIR', 'logs'), 'app.log'),
    maxBytes=5 * 1024 * 1024,
    backupCount=5,
)
_file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s'))
for _logger in (app.logger, logging.getLogger('services')):
    _logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))
    if not any(isinstance(h, RotatingFileHandler) for h in _logger.handlers):
        _logger.addHandler(_file_handler)

if app.config.get('SENTRY_DSN'):
    sentry_sdk.init(
        dsn=app.config.get('SENTRY_DSN'),
        integrations=[FlaskIntegration()],
        traces_sample_rate=app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.1),
    )

def warn_on_default_admin():
    """Log loudly when the reserved administrator address was never configured."""
    if app.config.get('ADMIN_EMAIL') == DEFAULT_ADMIN_EMAIL:
        app.logger.warning(
            'ADMIN_EMAIL is not configured; whoever registers %s will be granted admin access',
            DEFAULT_ADMIN_EMAIL,
        )
        return True
    return False

warn_on_default_admin()

SESSION_USER_KEY = 'user'
ANONYMOUS_NAME = 'Anonymous'

REQUEST_METRICS = {
    'requests_total': 0,
    'errors_total': 0,
    'latency_ms_total': 0.0,
}


@app.before_request
def _metrics_before_request():
    request._start_ts = perf_counter()


@app.after_request
def _metrics_after_request(response):
    started = getattr(request, '_start_ts', None)
    if started is not None:
        REQUEST_METRICS['requests_total'] += 1
        elapsed = (perf_counter() - started) * 1000.0
        REQUEST_METRICS['latency_ms_total'] += elapsed
        if response.status_code >= 400:
            REQUEST_METRICS['errors_total'] += 1
    return response


# ===== EXTERNAL SERVICES =====

def get_backend():
    """Supabase gateway, built on first use from app config."""
    backend = app.extensions.get('feedback_backend')
    if backend is None:
        backend = SupabaseBackend.from_config(app.config)
        app.extensions['feedback_backend'] = backend
    return backend


def get_classifier():
    classifier = app.extensions.get('sentiment_classifier')
    if classifier is None:
        classifier = SentimentClassifier.from_config(app.config)
        app.extensions['sentiment_classifier'] = classifier
    return classifier

# ===== SESSION USER FOR FLASK-LOGIN =====

class SessionUser(UserMixin):
    """The signed-in user, rebuilt on each request from the session snapshot."""

    def __init__(self, id, email, name, is_admin=False, access_token=None):
        self.id = id
        self.email = email
        self.name = name
        self.is_admin = bool(is_admin)
        self.access_token = access_token

    @classmethod
    def from_profile(cls, profile, access_token):
        return cls(
            id=profile.id,
            email=profile.email,
            name=profile.name,
            is_admin=profile.is_admin,
            access_token=access_token,
        )

    @classmethod
    def from_snapshot(cls, snapshot):
        return cls(
            id=snapshot['id'],
            email=snapshot.get('email'),
            name=snapshot.get('name'),
            is_admin=snapshot.get('isAdmin', False),
            access_token=snapshot.get('accessToken'),
        )

    def to_snapshot(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'isAdmin': self.is_admin,
            'accessToken': self.access_token,
        }

    def to_public(self):
        return {'id': self.id, 'name': self.name, 'email': self.email, 'isAdmin': self.is_admin}


# Initialize Flask-Login
login_manager = LoginManager()

@login_manager.user_loader
def load_user(user_id):
    snapshot = session.get(SESSION_USER_KEY)
    if snapshot and str(snapshot.get('id')) == str(user_id):
        return SessionUser.from_snapshot(snapshot)
    return None

UNAUTHORIZED_MESSAGES = {
    'submit_feedback': 'Please login to submit feedback',
    'my_feedback': 'Please login to view your feedback',
}

@login_manager.unauthorized_handler
def unauthorized():
    message = UNAUTHORIZED_MESSAGES.get(request.endpoint, 'Please login to continue')
    return jsonify({'error': message}), 401

login_manager.init_app(app)


def clean_text(value):
    """Strip all markup from stored text. Ampersands stay literal; angle brackets stay escaped."""
    return bleach.clean(value, tags=[], strip=True).replace('&amp;', '&').strip()


def admin_required(view):
    """Reject anyone who is not a signed-in administrator with a 403."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated or not current_user.is_admin:
            raise AccessDenied()
        return view(*args, **kwargs)
    return wrapped

# ===== AUTH ROUTES =====

@app.route('/api/auth/signup', methods=['POST'])
@limiter.limit('5 per hour')
def signup():
    """Create the auth identity and its profile row. Does not sign in."""
    data = parse_payload(SignupRequest, request.get_json(silent=True), 'Name, email and password are required')
    backend = get_backend()
    identity = backend.sign_up(data.email, data.password, data.name)

    is_admin = is_reserved_admin(identity.email, app.config['ADMIN_EMAIL'])
    name = app.config['ADMIN_NAME'] if is_admin else data.name

    if backend.can_write_profiles(identity.access_token):
        try:
            backend.insert_user(
                {'id': identity.id, 'email': identity.email, 'name': name, 'is_admin': is_admin},
                identity.access_token,
            )
        except DataServiceError as exc:
            lowered = exc.message.lower()
            if 'duplicate' not in lowered and 'unique' not in lowered:
                raise
            app.logger.info('Profile for %s already exists', identity.email)
    else:
        app.logger.info('Profile for %s deferred to first login', identity.email)

    app.logger.info('Signup: %s', identity.email)
    return jsonify({
        'message': 'Signup successful! Please check your email to verify your account.',
        'user': {'id': identity.id, 'email': identity.email, 'name': name},
    })


@app.route('/api/auth/login', methods=['POST'])
@limiter.limit('5 per 15 minutes')
def login():
    data = parse_payload(LoginRequest, request.get_json(silent=True), 'Email and password are required')
    backend = get_backend()
    identity = backend.sign_in(data.email, data.password)
    profile = reconcile_user(backend, identity, app.config['ADMIN_EMAIL'], app.config['ADMIN_NAME'])

    user = SessionUser.from_profile(profile, identity.access_token)
    # Drop any previous user's state but keep the CSRF secret the client already holds.
    csrf_field = app.config.get('WTF_CSRF_FIELD_NAME', 'csrf_token')
    csrf_secret = session.get(csrf_field)
    session.clear()
    if csrf_secret:
        session[csrf_field] = csrf_secret
    session[SESSION_USER_KEY] = user.to_snapshot()
    login_user(user)
    app.logger.info('Login: %s (admin=%s)', profile.email, profile.is_admin)
    return jsonify({'message': 'Login successful', 'user': profile.to_public(), 'csrfToken': generate_csrf()})


@app.route('/api/auth/logout', methods=['POST'])
def logout():
    logout_user()
    session.pop(SESSION_USER_KEY, None)
    return jsonify({'message': 'Logged out successfully'})


@app.route('/api/auth/status')
def auth_status():
    payload = {'authenticated': current_user.is_authenticated, 'csrfToken': generate_csrf()}
    if current_user.is_authenticated:
        payload['user'] = current_user.to_public()
    return jsonify(payload)

# ===== FEEDBACK ROUTES =====

@app.route('/api/feedback/submit', methods=['POST'])
@login_required
@limiter.limit('20 per hour')
def submit_feedback():
    """Classify and store one feedback entry for the signed-in student."""
    data = parse_payload(FeedbackSubmission, request.get_json(silent=True))
    faculty_name = clean_text(data.faculty_name)
    subject = clean_text(data.subject)
    feedback_text = clean_text(data.feedback_text)
    if not (faculty_name and subject and feedback_text):
        raise ValidationFailure()

    sentiment = get_classifier().classify(feedback_text)

    row = {
        'student_id': current_user.id,
        'student_name': ANONYMOUS_NAME if data.is_anonymous else current_user.name,
        'faculty_name': faculty_name,
        'subject': subject,
        'feedback_text': feedback_text,
        'is_anonymous': data.is_anonymous,
        'sentiment': sentiment,
    }
    stored = get_backend().insert_feedback(row, current_user.access_token)
    app.logger.info('Feedback stored for faculty=%s sentiment=%s', row['faculty_name'], sentiment)
    return jsonify({'message': 'Feedback submitted successfully!', 'feedback': stored})


@app.route('/api/feedback/all')
@admin_required
def all_feedback():
    return jsonify({'feedback': get_backend().list_feedback(current_user.access_token)})


@app.route('/api/feedback/stats')
@admin_required
def feedback_stats():
    return jsonify(sentiment_stats(get_backend().list_feedback(current_user.access_token)))


@app.route('/api/feedback/my-feedback')
@login_required
def my_feedback():
    rows = get_backend().list_feedback(current_user.access_token, student_id=current_user.id)
    return jsonify({'feedback': rows})


@app.route('/api/feedback/analytics')
@admin_required
def feedback_analytics():
    return jsonify(analyze_feedback(get_backend().list_feedback(current_user.access_token)))

# ===== OPERATIONS =====

@app.route('/health')
def health():
    return jsonify({'status': 'ok', 'service': 'student-feedback-portal'}), 200


@app.route('/metrics')
def metrics():
    total = REQUEST_METRICS['requests_total']
    avg_latency = (REQUEST_METRICS['latency_ms_total'] / total) if total else 0.0
    return jsonify({
        'requests_total': total,
        'errors_total': REQUEST_METRICS['errors_total'],
        'avg_latency_ms': round(avg_latency, 2),
    }), 200


# ===== ERROR HANDLERS =====


@app.errorhandler(PortalError)
def portal_error(error):
    if error.status_code >= 500:
        app.logger.error('%s on %s: %s', type(error).__name__, request.path, error.message)
    return jsonify({'error': error.message}), error.status_code


@app.errorhandler(CSRFError)
def csrf_error(error):
    return jsonify({'error': error.description}), 400


@app.errorhandler(429)
def rate_limited(error):
    reset_ts = int((datetime.now(timezone.utc) + timedelta(minutes=15)).timestamp())
    resp = jsonify({'error': 'Too many requests. Please wait before trying again.'})
    resp.status_code = 429
    resp.headers['X-RateLimit-Reset'] = str(reset_ts)
    return resp


@app.errorhandler(404)
def not_found(error):
    return jsonify({'error': 'Not found'}), 404


@app.errorhandler(405)
def method_not_allowed(error):
    return jsonify({'error': 'Method not allowed'}), 405


@app.errorhandler(Exception)
def internal_error(error):
    if isinstance(error, HTTPException):
        return jsonify({'error': error.description}), error.code
    app.logger.exception('Unhandled error on %s', request.path)
    return jsonify({'error': str(error) or UnexpectedFailure.default_message}), 500

# ===== APPLICATION ENTRY POINT =====

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=app.config['DEBUG'])
