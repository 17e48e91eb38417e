import os
import threading

class BackendSettings:
    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        self.DEBUG_MODE = os.environ.get("DEBUG_MODE","development")
        # Authorization settings
        self.SUPER_ADMIN_ROLE = os.environ.get("SUPER_ADMIN_ROLE", "super_admin")
        self.CATALOG_ADMIN_ROLE = os.environ.get("CATALOG_ADMIN_ROLE", "admin")
        self.CATALOG_BASELINE_ROLE = os.environ.get("CATALOG_BASELINE_ROLE", "user")
        # Cache lifetimes in seconds
        self.ROLE_PERMISSIONS_TTL = int(os.environ.get("ROLE_PERMISSIONS_TTL", "3600"))
        self.COMPANY_MEMBERS_TTL = int(os.environ.get("COMPANY_MEMBERS_TTL", "300"))
        self.CATALOG_TTL = int(os.environ.get("CATALOG_TTL", "600"))

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(BackendSettings, cls).__new__(cls)
        return cls._instance

settings = BackendSettings()
