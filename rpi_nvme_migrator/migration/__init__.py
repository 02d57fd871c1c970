from .state_machine import Migrator


__all__ = ["Migrator"]
