import os

import firebase_admin
from firebase_admin import credentials


def init_firebase(service_account_path: str, storage_bucket: str | None = None) -> bool:
    """Initialise the Firebase Admin app once. Returns False when no service account is available."""
    if firebase_admin._apps:
        return True
    if not service_account_path or not os.path.exists(service_account_path):
        return False

    cred = credentials.Certificate(service_account_path)
    options = {"storageBucket": storage_bucket} if storage_bucket else None
    firebase_admin.initialize_app(cred, options)
    return True
