from flask import Flask, request, jsonify, g, current_app
from flask_cors import CORS
from flask_jwt_extended import JWTManager, create_access_token, create_refresh_token, jwt_required, get_jwt_identity, get_jwt
import logging
import os

from config import config, INSTANCE_DIR, is_remote_configured
from errors import FarmTrackError, RemoteStoreError
from identity import SqlIdentityProvider
from local_store import LocalStore
from models import db, ActivityLog
from remote_store import RemoteStore
from repository import RecordRepository
from retry import RetryPolicy
from session import SessionStore, session_required
from validation import validate_profile, SOIL_TYPES


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
    root.setLevel(level)
    app.logger.setLevel(level)


def get_repository():
    ext = current_app.extensions['farmtrack']
    return RecordRepository(ext['remote'], LocalStore(), ext['retry'])


def create_app(config_name='development', identity_provider=None, remote_store=None, retry_policy=None):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    configure_logging(app)

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///'):
        os.makedirs(INSTANCE_DIR, exist_ok=True)

    # Initialize extensions (SQLAlchemy)
    db.init_app(app)

    CORS(app,
     resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}},
     supports_credentials=True,
     allow_headers=["Content-Type", "Authorization"],
     methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"])

    JWTManager(app)

    app.extensions['farmtrack'] = {
        'identity': identity_provider or SqlIdentityProvider(),
        'remote': remote_store or RemoteStore.from_config(app.config),
        'retry': retry_policy or RetryPolicy.from_config(app.config),
    }

    if not is_remote_configured(app.config.get('SUPABASE_URL'), app.config.get('SUPABASE_ANON_KEY')):
        app.logger.warning("Remote store is not configured; records will be kept on this device only.")

    # --- ERROR HANDLERS ---

    @app.errorhandler(FarmTrackError)
    def handle_farmtrack_error(e):
        if isinstance(e, RemoteStoreError):
            app.logger.warning("Remote store failure on %s %s: %s", request.method, request.path, e.message)
        return jsonify(e.to_dict()), e.status_code

    # --- HELPER FUNCTIONS ---

    def identity_provider_():
        return app.extensions['farmtrack']['identity']

    def issue_tokens(identity):
        claims = {'email': identity.get('email', ''), 'name': identity.get('name', '')}
        return {
            'access_token': create_access_token(identity=identity['id'], additional_claims=claims),
            'refresh_token': create_refresh_token(identity=identity['id'], additional_claims=claims),
        }

    def start_session(identity, status):
        SessionStore().save(identity)
        repo = get_repository()
        profile = repo.ensure_profile(identity)
        body = {'user': identity, 'profile': profile}
        body.update(issue_tokens(identity))
        if profile['source'] == 'local':
            body['warning'] = 'Profile saved on this device only'
        return jsonify(body), status

    # ============ Authentication Routes ============

    @app.route('/api/auth/register', methods=['POST'])
    def register():
        data = request.get_json(silent=True) or {}
        identity = identity_provider_().register(data.get('email'), data.get('password'), data.get('name') or 'New Farmer')
        app.logger.info("Registered user %s", identity['id'])
        return start_session(identity, 201)

    @app.route('/api/auth/login', methods=['POST'])
    def login():
        data = request.get_json(silent=True) or {}
        identity = identity_provider_().authenticate(data.get('email'), data.get('password'))
        return start_session(identity, 200)

    @app.route('/api/auth/refresh', methods=['POST'])
    @jwt_required(refresh=True)
    def refresh():
        claims = get_jwt()
        access_token = create_access_token(
            identity=get_jwt_identity(),
            additional_claims={'email': claims.get('email', ''), 'name': claims.get('name', '')})
        return jsonify({'access_token': access_token}), 200

    @app.route('/api/auth/logout', methods=['POST'])
    def logout():
        SessionStore().clear()
        return jsonify({'message': 'Signed out successfully'}), 200

    @app.route('/api/auth/me', methods=['GET'])
    @session_required
    def get_current_user():
        return jsonify({'user': g.identity}), 200

    # ============ Status Routes ============

    @app.route('/api/status', methods=['GET'])
    def get_status():
        remote = app.extensions['farmtrack']['remote']
        configured = remote.configured
        return jsonify({
            'configured': configured,
            'reachable': remote.probe() if configured else False,
            'soil_types': SOIL_TYPES,
        }), 200

    # ============ Profile Routes ============

    @app.route('/api/profile', methods=['GET'])
    @session_required
    def get_profile():
        repo = get_repository()
        profile = repo.ensure_profile(g.identity)
        return jsonify({'profile': profile, 'diagnostics': repo.diagnostics}), 200

    @app.route('/api/profile', methods=['PUT'])
    @session_required
    def update_profile():
        fields = validate_profile(request.get_json(silent=True) or {})
        repo = get_repository()
        profile = repo.ensure_profile(g.identity)
        updated = repo.update_profile(profile, fields)
        return jsonify({'message': 'Profile updated successfully', 'profile': updated}), 200

    # ============ Farmland Routes ============

    @app.route('/api/farmlands', methods=['GET'])
    @session_required
    def get_farmlands():
        repo = get_repository()
        profile = repo.ensure_profile(g.identity)
        result = repo.list_farmlands(profile['id'])
        return jsonify({
            'farmlands': result.records,
            'total': len(result.records),
            'remote_ok': result.remote_ok,
            'farmer_id': profile['id'],
        }), 200

    @app.route('/api/farmlands', methods=['POST'])
    @session_required
    def create_farmland():
        data = request.get_json(silent=True) or {}
        repo = get_repository()
        profile = repo.ensure_profile(g.identity)
        result = repo.create_farmland(profile['id'], data, user_id=g.identity['id'])
        message = 'Farmland saved locally' if result.saved_locally else 'Farmland added successfully'
        return jsonify({'message': message, 'stored': result.stored, 'farmland': result.record}), 201

    @app.route('/api/farmlands/<farmland_id>', methods=['DELETE'])
    @session_required
    def delete_farmland(farmland_id):
        repo = get_repository()
        profile = repo.ensure_profile(g.identity)
        repo.delete_farmland(profile['id'], farmland_id, request.args.get('source', 'remote'))
        return jsonify({'message': 'Farmland deleted'}), 200

    # ============ Crop Routes ============

    @app.route('/api/crops', methods=['GET'])
    @session_required
    def get_crops():
        result = get_repository().list_crops()
        return jsonify({'crops': result.records, 'total': len(result.records), 'remote_ok': result.remote_ok}), 200

    @app.route('/api/crops', methods=['POST'])
    @session_required
    def create_crop():
        data = request.get_json(silent=True) or {}
        result = get_repository().create_crop(data, user_id=g.identity['id'])
        message = 'Crop saved locally' if result.saved_locally else 'Crop added successfully'
        return jsonify({'message': message, 'stored': result.stored, 'crop': result.record}), 201

    @app.route('/api/crops/<crop_id>', methods=['DELETE'])
    @session_required
    def delete_crop(crop_id):
        get_repository().delete_crop(crop_id, request.args.get('source', 'remote'))
        return jsonify({'message': 'Crop deleted'}), 200

    # ============ Sync & Dashboard Routes ============

    @app.route('/api/sync', methods=['POST'])
    @session_required
    def sync():
        report = get_repository().sync(g.identity)
        if report.rejected:
            status = 502
        elif not report.remote_ok:
            status = 503
        else:
            status = 200
        return jsonify(report.to_dict()), status

    @app.route('/api/dashboard', methods=['GET'])
    @session_required
    def get_dashboard():
        repo = get_repository()
        profile = repo.ensure_profile(g.identity)
        return jsonify({'profile': profile, 'summary': repo.dashboard(profile)}), 200

    # ============ Activity Logs Routes ============

    @app.route('/api/activity-logs', methods=['GET'])
    @session_required
    def get_activity_logs():
        page = request.args.get('page', 1, type=int)
        per_page = request.args.get('per_page', 50, type=int)

        pagination = ActivityLog.query.filter_by(user_id=g.identity['id']) \
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()) \
            .paginate(page=page, per_page=per_page, error_out=False)

        return jsonify({
            'logs': [log.to_dict() for log in pagination.items],
            'total': pagination.total,
            'pages': pagination.pages,
            'current_page': page
        }), 200

    # Initialize DB tables if they don't exist
    with app.app_context():
        db.create_all()

    return app

if __name__ == '__main__':
    app = create_app(os.environ.get('FLASK_CONFIG', 'development'))
    app.run(host=os.environ.get('HOST', '127.0.0.1'), port=int(os.environ.get('PORT', '5000')))
