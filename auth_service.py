from flask import current_app
from flask_bcrypt import Bcrypt
from flask_jwt_extended import create_access_token
from sqlalchemy.exc import IntegrityError
from models import db, User
from errors import ConflictError, UnauthorizedError
import logging

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid credentials'


# ============================================
# Helper Functions
# ============================================

def init_password_hashing(app):
    """
    建立 bcrypt 並預先算好假 hash

    email 不存在時拿假 hash 比對,讓「帳號不存在」和「密碼錯誤」
    都只做一次 bcrypt 比對,第一次請求也一樣
    """
    bcrypt = Bcrypt(app)
    app.extensions['bcrypt'] = bcrypt
    app.extensions['dummy_password_hash'] = bcrypt.generate_password_hash(
        'not-a-real-password'
    ).decode('utf-8')


def get_bcrypt():
    """從 Flask app extensions 取得 bcrypt 實例 (不用 global variable)"""
    return current_app.extensions['bcrypt']


# ============================================
# 註冊
# ============================================

def register_user(name, email, password):
    """
    建立新帳號

    1. 檢查 email 是否已存在 (存在就 409,不改任何資料)
    2. bcrypt 加密密碼
    3. 寫入 user

    Returns:
        dict: {message, userId, name}
    """
    if User.query.filter_by(email=email).first():
        logger.info(f"Registration rejected, email already exists: {email}")
        raise ConflictError('An account with this email already exists')

    hashed_password = get_bcrypt().generate_password_hash(password).decode('utf-8')

    user = User(name=name, email=email, password_hash=hashed_password)

    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        # 兩個請求同時註冊同一個 email,由 unique constraint 擋下
        db.session.rollback()
        logger.info(f"Registration rejected by unique constraint: {email}")
        raise ConflictError('An account with this email already exists')

    logger.info(f"New user registered: {user.email}")

    return {
        'message': 'Registration successful',
        'userId': user.id,
        'name': user.name
    }


# ============================================
# 登入
# ============================================

def login_user(email, password):
    """
    驗證帳密並簽發 access token

    不區分是 email 錯還是 password 錯,避免帳號枚舉攻擊

    Returns:
        dict: {accessToken, userId, email, name}
    """
    user = User.query.filter_by(email=email).first()
    bcrypt = get_bcrypt()

    if user is None:
        bcrypt.check_password_hash(current_app.extensions['dummy_password_hash'], password)
        logger.warning(f"Failed login attempt for email: {email}")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if not bcrypt.check_password_hash(user.password_hash, password):
        logger.warning(f"Failed login attempt for email: {email}")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    access_token = create_access_token(
        identity=user.id,
        additional_claims={'email': user.email}
    )

    logger.info(f"User logged in: {user.email}")

    return {
        'accessToken': access_token,
        'userId': user.id,
        'email': user.email,
        'name': user.name
    }
