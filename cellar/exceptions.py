class CellarException(Exception):
    """酒窖系统基础异常类"""
    def __init__(self, message, code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['success'] = False
        return rv

class ValidationError(CellarException):
    """输入违反业务约束 (体积、容量、产量上限...)"""
    def __init__(self, message="Invalid data", payload=None):
        super().__init__(message, code=400, payload=payload)

class NotFoundError(CellarException):
    """引用的记录不存在"""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, code=404, payload=payload)

class PermissionDenied(CellarException):
    """权限不足"""
    def __init__(self, message="Access denied", payload=None):
        super().__init__(message, code=403, payload=payload)
