from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException
from sqlalchemy import text
from config import get_config
from models import db, utcnow
from errors import APIError, UnauthorizedError
from auth_service import init_password_hashing
import logging
from logging.handlers import RotatingFileHandler
import os

# ============================================
# Logging 設定
# ============================================

LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 10


def _rotating_handler(path, level, formatter):
    handler = RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _has_log_file(logger, path):
    path = os.path.abspath(path)
    return any(
        isinstance(handler, RotatingFileHandler) and handler.baseFilename == path
        for handler in logger.handlers
    )


def setup_logging(app):
    """
    設定 logging 系統

    app.log 收 INFO 以上, error.log 只收 ERROR,
    檔案滿了自動輪替

    同一個 process 建第二個 app 時不會重複掛 handler
    """
    log_dir = app.config['LOG_DIR']
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )

    # app.logger 和各模組的 logger (auth_service / task_service ...) 都寫進同一組檔案
    root_logger = logging.getLogger()
    for filename, level in [('app.log', logging.INFO), ('error.log', logging.ERROR)]:
        path = os.path.join(log_dir, filename)
        if not _has_log_file(root_logger, path):
            root_logger.addHandler(_rotating_handler(path, level, formatter))
    root_logger.setLevel(app.config['LOG_LEVEL'])
    app.logger.setLevel(app.config['LOG_LEVEL'])

    app.logger.info('Task Manager API starting, logs in %s', log_dir)


def error_response(error_code, message, status):
    return jsonify({
        'error': error_code,
        'message': message,
        'status': status
    }), status


# ============================================
# JWT 錯誤處理
# 沒帶、壞掉、過期的 token 都回同一個 401 body,原因只寫進 log
# ============================================

def _guard_failure():
    error = UnauthorizedError()
    return jsonify(error.to_dict()), error.status_code


def register_jwt_handlers(app, jwt):

    @jwt.expired_token_loader
    def on_expired_token(jwt_header, jwt_payload):
        app.logger.warning(f"Rejected expired token: {request.method} {request.path} ({request.remote_addr})")
        return _guard_failure()

    @jwt.invalid_token_loader
    def on_invalid_token(error):
        """格式錯誤、簽章錯誤"""
        app.logger.warning(f"Rejected invalid token: {request.method} {request.path} ({request.remote_addr}): {error}")
        return _guard_failure()

    @jwt.unauthorized_loader
    def on_missing_token(error):
        app.logger.warning(f"Missing token: {request.method} {request.path} ({request.remote_addr}): {error}")
        return _guard_failure()


# ============================================
# 全域錯誤處理
# ============================================

def register_error_handlers(app):

    @app.errorhandler(APIError)
    def handle_api_error(error):
        """service 層丟出的已知錯誤"""
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(400)
    def handle_bad_request(error):
        return error_response('bad_request', 'The request is malformed or invalid', 400)

    @app.errorhandler(404)
    def handle_not_found(error):
        return error_response('not_found', 'The requested resource does not exist', 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response(
            'method_not_allowed',
            'The HTTP method is not allowed for this endpoint',
            405
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        """其他 werkzeug HTTP 錯誤 (413, 415 ...)"""
        return error_response(
            (error.name or 'http_error').lower().replace(' ', '_'),
            error.description,
            error.code
        )

    @app.errorhandler(500)
    def handle_server_error(error):
        """abort(500): rollback 後回通用訊息, stack trace 只進 log"""
        db.session.rollback()
        app.logger.error(f"500 on {request.method} {request.path}: {error}", exc_info=True)
        return error_response(
            'internal_server_error',
            'An internal error occurred.',
            500
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        """最後的防線,捕捉所有沒被處理的 exception"""
        db.session.rollback()
        app.logger.error(f"Unhandled {type(error).__name__} on {request.method} {request.path}: {error}", exc_info=True)
        return error_response(
            'unexpected_error',
            'An unexpected error occurred. Please try again later.',
            500
        )


# ============================================
# Request/Response Logging
# ============================================

def register_request_hooks(app):

    @app.before_request
    def log_incoming():
        if not app.debug:
            app.logger.info(f"--> {request.method} {request.path} ({request.remote_addr})")

    @app.after_request
    def finish_response(response):
        if not app.debug:
            app.logger.info(f"<-- {response.status_code} {request.method} {request.path}")

        # security headers
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-XSS-Protection'] = '1; mode=block'

        return response


# ============================================
# Health Check / API 首頁
# ============================================

def register_meta_routes(app):
    prefix = app.config['API_PREFIX']

    @app.route('/health', methods=['GET'])
    def health_check():
        """DB 連得上回 200, 否則 503"""
        try:
            db.session.execute(text('SELECT 1'))
        except Exception as e:
            app.logger.error(f"Health check: database unreachable: {e}")
            return jsonify({
                'status': 'unhealthy',
                'database': 'disconnected',
                'error': 'Database connection failed'
            }), 503

        return jsonify({
            'status': 'healthy',
            'database': 'connected',
            'timestamp': utcnow().isoformat() + 'Z'
        }), 200

    @app.route('/', methods=['GET'])
    def home():
        """API 首頁"""
        return jsonify({
            'message': 'Task Manager API',
            'version': app.config['API_VERSION'],
            'endpoints': {
                'health': {'path': '/health', 'methods': ['GET']},
                'docs': {'path': '/api-docs', 'methods': ['GET']},
                'auth': {
                    'register': {'path': f'{prefix}/auth/register', 'methods': ['POST']},
                    'login': {'path': f'{prefix}/auth/login', 'methods': ['POST']},
                    'logout': {'path': f'{prefix}/auth/logout', 'methods': ['POST']}
                },
                'tasks': {
                    'list': {'path': f'{prefix}/tasks', 'methods': ['GET', 'POST']},
                    'types': {'path': f'{prefix}/tasks/types', 'methods': ['GET']},
                    'detail': {'path': f'{prefix}/tasks/:id', 'methods': ['GET', 'PATCH', 'DELETE']}
                }
            }
        }), 200


# ============================================
# App Factory
# ============================================

def create_app(config_class=None):
    """
    建立 Flask App

    Args:
        config_class: 設定類別,預設依 FLASK_ENV 選擇
    """
    config_class = config_class or get_config()
    config_class.validate()

    app = Flask(__name__)
    app.config.from_object(config_class)
    app.json.sort_keys = False

    CORS(app,
         supports_credentials=True,
         origins=app.config['CORS_ORIGINS'],
         methods=['GET', 'POST', 'PATCH', 'DELETE', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization'])

    # 擴展初始化
    db.init_app(app)
    jwt = JWTManager(app)
    init_password_hashing(app)

    if not app.debug and not app.testing:
        setup_logging(app)

    with app.app_context():
        db.create_all()
        app.logger.info('Schema ready (users, tasks)')

    # 註冊 Blueprints
    from auth import auth_bp
    from tasks import tasks_bp
    from view_db import register_commands
    from api_docs import register_api_docs

    prefix = app.config['API_PREFIX']
    app.register_blueprint(auth_bp, url_prefix=f'{prefix}/auth')
    app.register_blueprint(tasks_bp, url_prefix=prefix or None)

    register_jwt_handlers(app, jwt)
    register_error_handlers(app)
    register_request_hooks(app)
    register_meta_routes(app)
    register_api_docs(app)
    register_commands(app)

    return app


# ============================================
# 啟動應用
# ============================================

if __name__ == '__main__':
    # production 環境請用 gunicorn "app:create_app()"
    app = create_app()

    app.run(
        host=os.getenv('FLASK_HOST', '0.0.0.0'),
        port=int(os.getenv('FLASK_PORT', 3000)),
        debug=app.config['DEBUG']
    )
