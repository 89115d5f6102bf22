"""Base domain exceptions.

所有领域异常都应继承自 DomainException，并可以通过定义 error_code
类属性来指定稳定的错误代码。
"""


class DomainException(Exception):
    """Base exception for all domain errors."""

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str = "A domain error occurred"):
        self.message = message
        super().__init__(self.message)
