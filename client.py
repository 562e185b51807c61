import requests
import logging

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

TASKS_KEY = ('tasks',)
TASK_TYPES_KEY = ('taskTypes',)


class ClientError(Exception):
    """API 回傳非 2xx;message 是 server 給的訊息,可以直接顯示給使用者"""

    def __init__(self, status_code, message, payload=None):
        super().__init__(f'{status_code}: {message}')
        self.status_code = status_code
        self.message = message
        self.payload = payload


# ============================================
# 登入狀態
# ============================================

class ClientSession:
    """
    目前登入的使用者

    明確傳給 TaskManagerClient,登出或收到 401 時呼叫 clear()
    """

    def __init__(self):
        self.clear()

    @property
    def is_authenticated(self):
        return self.access_token is not None

    def login_success(self, payload):
        self.access_token = payload['accessToken']
        self.user_id = payload['userId']
        self.email = payload['email']
        self.name = payload['name']

    def clear(self):
        self.access_token = None
        self.user_id = None
        self.email = None
        self.name = None


# ============================================
# 查詢快取
# ============================================

class QueryCache:
    """
    依 key (tuple) 存放 GET 的結果

    invalidate(('tasks',)) 會一起清掉 ('tasks', <id>)
    """

    def __init__(self):
        self._entries = {}

    def get(self, key):
        return self._entries.get(key)

    def __contains__(self, key):
        return key in self._entries

    def set(self, key, value):
        self._entries[key] = value

    def invalidate(self, prefix):
        for key in [k for k in self._entries if k[:len(prefix)] == prefix]:
            del self._entries[key]

    def clear(self):
        self._entries.clear()


# ============================================
# API Client
# ============================================

class TaskManagerClient:
    """
    Task Manager REST API 的 client

    1. 有 token 就自動帶 Authorization: Bearer
    2. 任何 401 都會清掉 session 和快取
    3. 新增/修改/刪除任務後讓 tasks 和 taskTypes 快取失效
    """

    def __init__(self, base_url, session=None, http=None, timeout=DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.session = session or ClientSession()
        self.http = http or requests.Session()
        self.timeout = timeout
        self.cache = QueryCache()

    # ------------------------------------------
    # HTTP
    # ------------------------------------------

    def _request(self, method, path, payload=None):
        headers = {}
        if self.session.access_token:
            headers['Authorization'] = f'Bearer {self.session.access_token}'

        response = self.http.request(
            method,
            f'{self.base_url}{path}',
            json=payload,
            headers=headers,
            timeout=self.timeout
        )

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code == 401:
            logger.info('Received 401, clearing client session')
            self.session.clear()
            self.cache.clear()

        if response.status_code >= 400:
            message = body.get('message') if isinstance(body, dict) else None
            raise ClientError(response.status_code, message or 'Request failed', body)

        return body

    def _query(self, key, method, path):
        if key in self.cache:
            return self.cache.get(key)
        result = self._request(method, path)
        self.cache.set(key, result)
        return result

    def _invalidate_tasks(self):
        self.cache.invalidate(TASKS_KEY)
        self.cache.invalidate(TASK_TYPES_KEY)

    # ------------------------------------------
    # Auth
    # ------------------------------------------

    def register(self, name, email, password):
        return self._request('POST', '/auth/register', {
            'name': name,
            'email': email,
            'password': password
        })

    def login(self, email, password):
        result = self._request('POST', '/auth/login', {'email': email, 'password': password})
        self.session.login_success(result)
        self.cache.clear()
        return result

    def logout(self):
        """server 端登出失敗也一樣清掉本地狀態"""
        try:
            if self.session.is_authenticated:
                self._request('POST', '/auth/logout')
        finally:
            self.session.clear()
            self.cache.clear()

    # ------------------------------------------
    # Tasks
    # ------------------------------------------

    def list_tasks(self):
        return self._query(TASKS_KEY, 'GET', '/tasks')

    def get_task(self, task_id):
        return self._query(TASKS_KEY + (task_id,), 'GET', f'/tasks/{task_id}')

    def get_task_types(self):
        return self._query(TASK_TYPES_KEY, 'GET', '/tasks/types')

    def create_task(self, title, description, **fields):
        payload = {'title': title, 'description': description}
        payload.update(fields)
        task = self._request('POST', '/tasks', payload)
        self._invalidate_tasks()
        return task

    def update_task(self, task_id, **fields):
        task = self._request('PATCH', f'/tasks/{task_id}', fields)
        self._invalidate_tasks()
        return task

    def delete_task(self, task_id):
        result = self._request('DELETE', f'/tasks/{task_id}')
        self._invalidate_tasks()
        return result

    # ------------------------------------------
    # 批次操作: 每個任務各打一次 API,沒有 atomicity
    # ------------------------------------------

    def bulk_update(self, task_ids, **fields):
        """
        Returns:
            dict: {task_id: 更新後的 task 或 ClientError}
        """
        results = {}
        for task_id in task_ids:
            try:
                results[task_id] = self.update_task(task_id, **fields)
            except ClientError as e:
                logger.warning(f"Bulk update failed for task {task_id}: {e.message}")
                results[task_id] = e
        return results

    def bulk_delete(self, task_ids):
        results = {}
        for task_id in task_ids:
            try:
                results[task_id] = self.delete_task(task_id)
            except ClientError as e:
                logger.warning(f"Bulk delete failed for task {task_id}: {e.message}")
                results[task_id] = e
        return results
