from flask import Blueprint, request, jsonify, g
from flask_jwt_extended import verify_jwt_in_request, get_jwt
from marshmallow import Schema, fields, validate, ValidationError, RAISE
from collections import namedtuple
from functools import wraps
from errors import ValidationFailed, UnauthorizedError
from auth_service import register_user, login_user
import logging

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

# 通過驗證的 token 內容 (sub = user id)
AuthIdentity = namedtuple('AuthIdentity', ['id', 'email'])


# ============================================
# Input Validation Schemas (用 marshmallow)
# ============================================

class RegisterSchema(Schema):
    """註冊輸入驗證"""
    class Meta:
        unknown = RAISE

    name = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=100, error='Name must be 1-100 characters'),
        error_messages={'required': 'Name is required'},
        metadata={'example': 'Ann Lee'}
    )
    # users.email 是 String(255)
    email = fields.Email(
        required=True,
        validate=validate.Length(max=255, error='Email must be at most 255 characters'),
        error_messages={
            'required': 'Email is required',
            'invalid': 'Please provide a valid email address'
        },
        metadata={'example': 'ann@example.com'}
    )
    password = fields.Str(
        required=True,
        validate=validate.Length(min=8, error='Password must be at least 8 characters long'),
        error_messages={'required': 'Password is required'},
        metadata={'example': 'correct-horse-battery', 'format': 'password'}
    )


class LoginSchema(Schema):
    """登入輸入驗證"""
    class Meta:
        unknown = RAISE

    email = fields.Email(
        required=True,
        error_messages={'required': 'Email is required'},
        metadata={'example': 'ann@example.com'}
    )
    password = fields.Str(
        required=True,
        error_messages={'required': 'Password is required'},
        metadata={'example': 'correct-horse-battery', 'format': 'password'}
    )


# ============================================
# Helper Functions
# ============================================

def validate_request_data(schema_class):
    """
    統一的輸入驗證函數

    在 request 邊界呼叫一次,之後的程式只會拿到驗證過的 dict

    Raises:
        ValidationFailed: body 不是 JSON object 或欄位不合法
    """
    data = request.get_json(silent=True)

    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be a JSON object')

    try:
        return schema_class().load(data)
    except ValidationError as err:
        raise ValidationFailed(details=err.messages)


def token_required(fn):
    """
    保護路由的裝飾器

    1. 驗證 Authorization: Bearer <token> 的簽章和過期時間
    2. payload 必須有 sub 和 email
    3. 把身分放進 g.current_identity

    任何一步失敗都回同一個 401 body,不會碰到資料庫
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        claims = get_jwt()

        user_id = claims.get('sub')
        email = claims.get('email')
        if not user_id or not email:
            logger.warning(f"Token without sub/email claims: {request.method} {request.path} ({request.remote_addr})")
            raise UnauthorizedError()

        g.current_identity = AuthIdentity(id=user_id, email=email)
        return fn(*args, **kwargs)

    return wrapper


def get_current_identity():
    """取得當前請求的登入身分 (只能在 token_required 之後使用)"""
    return g.current_identity


# ============================================
# 註冊 API
# ============================================

@auth_bp.route('/register', methods=['POST'])
def register():
    """使用者註冊"""
    result = validate_request_data(RegisterSchema)

    response = register_user(result['name'], result['email'], result['password'])
    return jsonify(response), 201


# ============================================
# 登入 API
# ============================================

@auth_bp.route('/login', methods=['POST'])
def login():
    """
    使用者登入

    帳號不存在和密碼錯誤回同一個 401 訊息
    """
    result = validate_request_data(LoginSchema)

    response = login_user(result['email'], result['password'])
    return jsonify(response), 200


# ============================================
# 登出 API
# ============================================

@auth_bp.route('/logout', methods=['POST'])
@token_required
def logout():
    """
    登出

    Server 端沒有 token 黑名單,前端自己丟掉 token 即可
    """
    logger.info(f"User logged out: {get_current_identity().email}")

    return jsonify({'message': 'Logged out successfully'}), 200
