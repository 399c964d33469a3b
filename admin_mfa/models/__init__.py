from admin_mfa.models.user import AdminUser
from admin_mfa.models.mfa import MfaPendingSecret, MfaSecret
from admin_mfa.models.mfa_config import MfaConfig
