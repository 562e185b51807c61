from flask import Blueprint, jsonify
from marshmallow import Schema, fields, validate, post_load, RAISE
from datetime import timezone
from models import TaskStatus, TaskPriority
from auth import token_required, get_current_identity, validate_request_data
import task_service
import logging

tasks_bp = Blueprint('tasks', __name__)
logger = logging.getLogger(__name__)

STATUS_ERROR = 'Status must be NOT_STARTED, STARTED, or FINISHED'
PRIORITY_ERROR = 'Priority must be LOW, MEDIUM, or HIGH'


# ============================================
# Input Validation Schemas
# JSON 用 camelCase (taskType / dueDate),載入後變成 model 的欄位名稱
# ============================================

class TaskSchemaBase(Schema):
    class Meta:
        unknown = RAISE  # 不在白名單的欄位直接 400

    @post_load
    def normalize_due_date(self, data, **kwargs):
        """帶時區的 dueDate 轉成 naive UTC 再存"""
        due_date = data.get('due_date')
        if due_date is not None and due_date.tzinfo is not None:
            data['due_date'] = due_date.astimezone(timezone.utc).replace(tzinfo=None)
        return data


class CreateTaskSchema(TaskSchemaBase):
    """建立任務驗證"""
    title = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=255, error='Title must be 1-255 characters'),
        error_messages={'required': 'Title is required'},
        metadata={'example': 'Fix login bug'}
    )
    description = fields.Str(
        required=True,
        validate=validate.Length(min=1, error='Description is required'),
        error_messages={'required': 'Description is required'},
        metadata={'example': 'The login page throws 500 on wrong password.'}
    )
    task_type = fields.Str(
        data_key='taskType',
        allow_none=True,
        validate=validate.Length(min=1, max=100, error='taskType must be 1-100 characters'),
        metadata={'example': 'Bug'}
    )
    status = fields.Str(
        validate=validate.OneOf(TaskStatus.ALL, error=STATUS_ERROR),
        load_default=TaskStatus.NOT_STARTED,
        metadata={'example': TaskStatus.NOT_STARTED}
    )
    priority = fields.Str(
        validate=validate.OneOf(TaskPriority.ALL, error=PRIORITY_ERROR),
        load_default=TaskPriority.MEDIUM,
        metadata={'example': TaskPriority.MEDIUM}
    )
    due_date = fields.DateTime(
        data_key='dueDate',
        allow_none=True,
        error_messages={'invalid': 'Due date must be a valid ISO date string'},
        metadata={'example': '2026-03-15T00:00:00.000Z'}
    )


class UpdateTaskSchema(TaskSchemaBase):
    """更新任務驗證 (所有欄位都是選填)"""
    title = fields.Str(
        validate=validate.Length(min=1, max=255, error='Title must be 1-255 characters'),
        metadata={'example': 'Fix login bug'}
    )
    description = fields.Str(
        validate=validate.Length(min=1, error='Description must not be empty if provided'),
        metadata={'example': 'Also happens on the signup page.'}
    )
    task_type = fields.Str(
        data_key='taskType',
        allow_none=True,
        validate=validate.Length(min=1, max=100, error='taskType must be 1-100 characters'),
        metadata={'example': 'Bug'}
    )
    status = fields.Str(
        validate=validate.OneOf(TaskStatus.ALL, error=STATUS_ERROR),
        metadata={'example': TaskStatus.FINISHED}
    )
    priority = fields.Str(
        validate=validate.OneOf(TaskPriority.ALL, error=PRIORITY_ERROR),
        metadata={'example': TaskPriority.LOW}
    )
    due_date = fields.DateTime(
        data_key='dueDate',
        allow_none=True,
        error_messages={'invalid': 'Due date must be a valid ISO date string'},
        metadata={'example': '2026-04-01T00:00:00.000Z'}
    )


# ============================================
# 輸出格式
# ============================================

def _isoformat(value):
    """資料庫存的是 naive UTC,輸出時補上 Z"""
    return value.isoformat() + 'Z' if value else None


def serialize_task(task):
    return {
        'id': task.id,
        'title': task.title,
        'description': task.description,
        'taskType': task.task_type,
        'status': task.status,
        'priority': task.priority,
        'dueDate': _isoformat(task.due_date),
        'completedAt': _isoformat(task.completed_at),
        'createdAt': _isoformat(task.created_at),
        'updatedAt': _isoformat(task.updated_at),
        'userId': task.user_id
    }


class TaskSchema(Schema):
    """
    回傳的任務格式 (只給 /api-docs 用)

    欄位要跟 serialize_task 一致
    """
    id = fields.Str(metadata={'example': '6f1c2a9e-3d4b-4c5a-9e8f-1a2b3c4d5e6f'})
    title = fields.Str()
    description = fields.Str()
    taskType = fields.Str(allow_none=True)
    status = fields.Str(validate=validate.OneOf(TaskStatus.ALL))
    priority = fields.Str(validate=validate.OneOf(TaskPriority.ALL))
    dueDate = fields.DateTime(allow_none=True)
    completedAt = fields.DateTime(allow_none=True)
    createdAt = fields.DateTime()
    updatedAt = fields.DateTime()
    userId = fields.Str()


# ============================================
# 建立任務
# ============================================

@tasks_bp.route('/tasks', methods=['POST'])
@token_required
def create_task():
    """建立任務,擁有者是目前登入的使用者"""
    result = validate_request_data(CreateTaskSchema)

    task = task_service.create_task(get_current_identity().id, result)
    return jsonify(serialize_task(task)), 201


# ============================================
# 查詢任務
# ============================================

@tasks_bp.route('/tasks', methods=['GET'])
@token_required
def list_tasks():
    """自己的所有任務 (最新的在前)"""
    tasks = task_service.find_all(get_current_identity().id)
    return jsonify([serialize_task(task) for task in tasks]), 200


@tasks_bp.route('/tasks/types', methods=['GET'])
@token_required
def list_task_types():
    """自己用過的任務類型,給 autocomplete 用"""
    return jsonify(task_service.get_types(get_current_identity().id)), 200


@tasks_bp.route('/tasks/<task_id>', methods=['GET'])
@token_required
def get_task(task_id):
    task = task_service.find_one(get_current_identity().id, task_id)
    return jsonify(serialize_task(task)), 200


# ============================================
# 更新任務
# ============================================

@tasks_bp.route('/tasks/<task_id>', methods=['PATCH'])
@token_required
def update_task(task_id):
    """
    部分更新

    有帶 status 才會連動 completedAt:
    FINISHED 設為現在時間,其他狀態清成 null
    """
    result = validate_request_data(UpdateTaskSchema)

    task = task_service.update_task(get_current_identity().id, task_id, result)
    return jsonify(serialize_task(task)), 200


# ============================================
# 刪除任務
# ============================================

@tasks_bp.route('/tasks/<task_id>', methods=['DELETE'])
@token_required
def delete_task(task_id):
    response = task_service.remove_task(get_current_identity().id, task_id)
    return jsonify(response), 200
