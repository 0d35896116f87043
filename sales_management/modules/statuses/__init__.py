from .registry import RegistrySnapshot, StatusRegistry
from .revenue import is_revenue_recognized

__all__ = ["RegistrySnapshot", "StatusRegistry", "is_revenue_recognized"]
