# ============================================
# API 錯誤類型
# 由 service 層丟出,app.py 的 errorhandler 統一轉成 JSON
# ============================================


class APIError(Exception):
    status_code = 500
    error_code = 'internal_server_error'
    default_message = 'An internal error occurred'

    def __init__(self, message=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        body = {
            'error': self.error_code,
            'message': self.message,
            'status': self.status_code
        }
        if self.details is not None:
            body['details'] = self.details
        return body


class ValidationFailed(APIError):
    """輸入驗證失敗 (details 會列出每個欄位的錯誤)"""
    status_code = 400
    error_code = 'validation_failed'
    default_message = 'Validation failed'


class UnauthorizedError(APIError):
    status_code = 401
    error_code = 'unauthorized'
    default_message = 'Unauthorized'


class NotFoundError(APIError):
    """不存在或不屬於呼叫者 (兩者刻意不區分)"""
    status_code = 404
    error_code = 'not_found'
    default_message = 'The requested resource does not exist'


class ConflictError(APIError):
    status_code = 409
    error_code = 'conflict'
    default_message = 'Resource already exists'
