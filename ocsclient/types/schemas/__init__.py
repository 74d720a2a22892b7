from .operator_config import OperatorConfigSchema

__all__ = ["OperatorConfigSchema"]
