from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone
import uuid

db = SQLAlchemy()


def utcnow():
    """naive UTC 時間 (資料庫一律存 UTC,不帶 tzinfo)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_id():
    return str(uuid.uuid4())


# ============================================
# 列舉值
# ============================================

class TaskStatus:
    NOT_STARTED = 'NOT_STARTED'
    STARTED = 'STARTED'
    FINISHED = 'FINISHED'

    ALL = [NOT_STARTED, STARTED, FINISHED]


class TaskPriority:
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'

    ALL = [LOW, MEDIUM, HIGH]


# ============================================
# 1. User 模型
# ============================================
class User(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # 關聯
    tasks = db.relationship('Task', backref='owner', lazy=True)

    def __repr__(self):
        return f'<User {self.email}>'


# ============================================
# 2. Task 模型
# ============================================
class Task(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    task_type = db.Column(db.String(100), nullable=True)  # 自由文字,例如 Bug / Feature
    status = db.Column(db.String(20), nullable=False, default=TaskStatus.NOT_STARTED)
    priority = db.Column(db.String(20), nullable=False, default=TaskPriority.MEDIUM)

    # 時間欄位
    due_date = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)  # 由系統維護
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # 擁有者 (建立後不會改變)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False)

    # 索引
    __table_args__ = (
        db.Index('idx_task_user_created_at', 'user_id', 'created_at'),
        db.Index('idx_task_user_type', 'user_id', 'task_type'),
    )

    def __repr__(self):
        return f'<Task {self.id} {self.status}>'
