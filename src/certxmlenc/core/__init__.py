from .settings import XmlEncryptionSettings, get_settings

__all__ = ["XmlEncryptionSettings", "get_settings"]
