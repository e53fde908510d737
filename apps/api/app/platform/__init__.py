from app.platform.security import AuthContext, InMemoryPolicyBackend, PolicyBackend, get_policy_backend, set_policy_backend

__all__ = [
    "AuthContext",
    "InMemoryPolicyBackend",
    "PolicyBackend",
    "get_policy_backend",
    "set_policy_backend",
]
