from .operator_config import OperatorConfig

__all__ = ["OperatorConfig"]
