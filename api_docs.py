from flask import current_app, jsonify
from apispec import APISpec
from apispec.ext.marshmallow import MarshmallowPlugin
from marshmallow import Schema, fields
from auth import RegisterSchema, LoginSchema
from tasks import CreateTaskSchema, UpdateTaskSchema, TaskSchema
from http import HTTPStatus
import re

OPENAPI_VERSION = '3.0.3'
BEARER = [{'bearerAuth': []}]

# Flask 的 <task_id> / <string:task_id> 換成 OpenAPI 的 {task_id}
RULE_ARGUMENT = re.compile(r'<(?:[^<>:]+:)?([^<>]+)>')


# ============================================
# 回應格式 (只用在文件裡)
# ============================================

class ErrorSchema(Schema):
    error = fields.Str(metadata={'example': 'validation_failed'})
    message = fields.Str(metadata={'example': 'Validation failed'})
    status = fields.Int(metadata={'example': 400})
    details = fields.Dict(metadata={'example': {'title': ['Title is required']}})


class MessageSchema(Schema):
    message = fields.Str()


class RegisterResultSchema(Schema):
    message = fields.Str(metadata={'example': 'Registration successful'})
    userId = fields.Str()
    name = fields.Str(metadata={'example': 'Ann Lee'})


class LoginResultSchema(Schema):
    accessToken = fields.Str()
    userId = fields.Str()
    email = fields.Str(metadata={'example': 'ann@example.com'})
    name = fields.Str(metadata={'example': 'Ann Lee'})


COMPONENTS = [
    ('Register', RegisterSchema),
    ('Login', LoginSchema),
    ('RegisterResult', RegisterResultSchema),
    ('LoginResult', LoginResultSchema),
    ('CreateTask', CreateTaskSchema),
    ('UpdateTask', UpdateTaskSchema),
    ('Task', TaskSchema),
    ('Message', MessageSchema),
    ('Error', ErrorSchema),
]


# ============================================
# 每個 endpoint 的說明
# key 是 Flask endpoint 名稱,沒列到的 route 只會有 view docstring
# ============================================

TASK_LIST = {'type': 'array', 'items': TaskSchema}

OPERATIONS = {
    'auth.register': {
        'tags': ['auth'], 'summary': 'Create an account',
        'body': RegisterSchema,
        'responses': {201: RegisterResultSchema, 400: ErrorSchema, 409: ErrorSchema},
    },
    'auth.login': {
        'tags': ['auth'], 'summary': 'Exchange credentials for an access token',
        'body': LoginSchema,
        'responses': {200: LoginResultSchema, 400: ErrorSchema, 401: ErrorSchema},
    },
    'auth.logout': {
        'tags': ['auth'], 'summary': 'Log out (stateless, the client drops its token)',
        'secured': True,
        'responses': {200: MessageSchema, 401: ErrorSchema},
    },
    'tasks.create_task': {
        'tags': ['tasks'], 'summary': 'Create a task owned by the caller',
        'secured': True, 'body': CreateTaskSchema,
        'responses': {201: TaskSchema, 400: ErrorSchema, 401: ErrorSchema},
    },
    'tasks.list_tasks': {
        'tags': ['tasks'], 'summary': "List the caller's tasks, newest first",
        'secured': True,
        'responses': {200: TASK_LIST, 401: ErrorSchema},
    },
    'tasks.list_task_types': {
        'tags': ['tasks'], 'summary': 'Distinct task types used by the caller',
        'secured': True,
        'responses': {200: {'type': 'array', 'items': {'type': 'string'}}, 401: ErrorSchema},
    },
    'tasks.get_task': {
        'tags': ['tasks'], 'summary': 'Fetch one task',
        'secured': True,
        'responses': {200: TaskSchema, 401: ErrorSchema, 404: ErrorSchema},
    },
    'tasks.update_task': {
        'tags': ['tasks'], 'summary': 'Partially update a task; status drives completedAt',
        'secured': True, 'body': UpdateTaskSchema,
        'responses': {200: TaskSchema, 400: ErrorSchema, 401: ErrorSchema, 404: ErrorSchema},
    },
    'tasks.delete_task': {
        'tags': ['tasks'], 'summary': 'Delete a task',
        'secured': True,
        'responses': {200: MessageSchema, 401: ErrorSchema, 404: ErrorSchema},
    },
    'health_check': {'tags': ['meta'], 'summary': 'Liveness and database check'},
    'home': {'tags': ['meta'], 'summary': 'API index'},
    'api_docs': {'tags': ['meta'], 'summary': 'This OpenAPI document'},
}


def _json_content(schema):
    return {'application/json': {'schema': schema}}


def _operation(endpoint, view):
    info = OPERATIONS.get(endpoint, {})
    operation = {
        'operationId': endpoint,
        'summary': info.get('summary') or (view.__doc__ or endpoint).strip().splitlines()[0],
        'responses': {},
    }
    if info.get('tags'):
        operation['tags'] = info['tags']
    if info.get('secured'):
        operation['security'] = BEARER
    if info.get('body') is not None:
        operation['requestBody'] = {'required': True, 'content': _json_content(info['body'])}

    for code, schema in info.get('responses', {200: None}).items():
        response = {'description': HTTPStatus(code).phrase}
        if schema is not None:
            response['content'] = _json_content(schema)
        operation['responses'][str(code)] = response
    return operation


def build_openapi_spec(app):
    """
    從 url_map 和 marshmallow schemas 產生 OpenAPI 文件

    Returns:
        dict: OpenAPI 3 document
    """
    spec = APISpec(
        title='Task Manager API',
        version=app.config['API_VERSION'],
        openapi_version=OPENAPI_VERSION,
        plugins=[MarshmallowPlugin()],
        info={'description': 'Account registration/login and per-user task CRUD'},
    )
    spec.components.security_scheme(
        'bearerAuth', {'type': 'http', 'scheme': 'bearer', 'bearerFormat': 'JWT'}
    )
    for name, schema in COMPONENTS:
        spec.components.schema(name, schema=schema)

    paths = {}
    for rule in app.url_map.iter_rules():
        if rule.endpoint == 'static':
            continue
        path = RULE_ARGUMENT.sub(r'{\1}', rule.rule)
        view = app.view_functions[rule.endpoint]
        entry = paths.setdefault(path, {'operations': {}, 'arguments': rule.arguments})
        for method in sorted(rule.methods - {'HEAD', 'OPTIONS'}):
            entry['operations'][method.lower()] = _operation(rule.endpoint, view)

    for path in sorted(paths):
        entry = paths[path]
        parameters = [
            {'in': 'path', 'name': name, 'required': True, 'schema': {'type': 'string'}}
            for name in sorted(entry['arguments'])
        ]
        spec.path(path=path, operations=entry['operations'], parameters=parameters or None)

    return spec.to_dict()


def register_api_docs(app):

    @app.route('/api-docs', methods=['GET'])
    def api_docs():
        """OpenAPI 文件 (JSON)"""
        return jsonify(build_openapi_spec(current_app)), 200
