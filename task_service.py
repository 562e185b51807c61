from models import db, Task, TaskStatus, utcnow
from errors import NotFoundError
import logging

logger = logging.getLogger(__name__)

# PATCH 可以修改的欄位 (user_id / completed_at / 時間戳記由系統維護)
UPDATABLE_FIELDS = ['title', 'description', 'task_type', 'priority', 'due_date']


# ============================================
# 輔助函數
# ============================================

def resolve_completed_at(status, now=None):
    """
    狀態變更時 completed_at 的連動規則

    - status 沒給: 不動 completed_at
    - FINISHED: completed_at = now
    - 其他狀態: completed_at = None

    Returns:
        dict: 要套用到 task 的欄位
    """
    if status is None:
        return {}

    if status == TaskStatus.FINISHED:
        return {'status': status, 'completed_at': now or utcnow()}

    return {'status': status, 'completed_at': None}


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


# ============================================
# CRUD
# ============================================

def create_task(owner_id, fields):
    """
    建立任務,擁有者固定為 owner_id

    fields 是已經通過 schema 驗證的 dict
    """
    task = Task(
        title=fields['title'],
        description=fields['description'],
        user_id=owner_id
    )

    # 沒給的欄位交給 model default
    for field in ['task_type', 'priority', 'due_date']:
        if fields.get(field) is not None:
            setattr(task, field, fields[field])

    # 建立時就是 FINISHED 也算一次狀態變更
    for field, value in resolve_completed_at(fields.get('status')).items():
        setattr(task, field, value)

    db.session.add(task)
    _commit()

    logger.info(f"Task created: {task.id} by user {owner_id}")
    return task


def find_all(owner_id):
    """使用者的全部任務,最新建立的在前"""
    return (
        Task.query
        .filter_by(user_id=owner_id)
        .order_by(Task.created_at.desc())
        .all()
    )


def find_one(owner_id, task_id):
    """
    取得單一任務

    不存在和「不是自己的」一律回 404,不洩漏任務是否存在
    """
    task = Task.query.filter_by(id=task_id, user_id=owner_id).first()

    if task is None:
        raise NotFoundError('Task not found')

    return task


def update_task(owner_id, task_id, fields):
    """只更新 fields 裡有出現的欄位"""
    task = find_one(owner_id, task_id)

    for field in UPDATABLE_FIELDS:
        if field in fields:
            setattr(task, field, fields[field])

    for field, value in resolve_completed_at(fields.get('status')).items():
        setattr(task, field, value)

    task.updated_at = utcnow()
    _commit()

    logger.info(f"Task {task_id} updated by user {owner_id}: {sorted(fields)}")
    return task


def remove_task(owner_id, task_id):
    task = find_one(owner_id, task_id)

    db.session.delete(task)
    _commit()

    logger.info(f"Task deleted: {task_id} by user {owner_id}")
    return {'message': 'Task deleted successfully'}


def get_types(owner_id):
    """使用者用過的 task_type (去重、排除 null、依字母排序),給前端 autocomplete 用"""
    rows = (
        db.session.query(Task.task_type)
        .filter(Task.user_id == owner_id, Task.task_type.isnot(None))
        .distinct()
        .order_by(Task.task_type.asc())
        .all()
    )
    return [row[0] for row in rows]
