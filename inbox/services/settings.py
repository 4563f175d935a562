"""
Model selection for the classifier.

A tenant's preferences['ai_model'] wins over the global AI_MODEL system
setting; with neither, the classifier uses its configured default.
"""
from inbox.config import MODEL_OVERRIDE_SETTING
from inbox.models.tenant import SystemSetting


def get_setting(session, key):
    setting = session.get(SystemSetting, key)
    if setting is None or not setting.value:
        return None
    return setting.value


def resolve_model_override(session, tenant):
    preferences = (tenant.preferences or {}) if tenant is not None else {}
    return preferences.get('ai_model') or get_setting(session, MODEL_OVERRIDE_SETTING)
