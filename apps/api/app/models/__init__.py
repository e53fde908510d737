from app.models.audit import ChangeLog

__all__ = ["ChangeLog"]
