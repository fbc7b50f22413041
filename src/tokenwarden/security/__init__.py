from tokenwarden.security.audit import AuditLogger, AuditSeverity, get_audit_logger

__all__ = ["AuditLogger", "AuditSeverity", "get_audit_logger"]
