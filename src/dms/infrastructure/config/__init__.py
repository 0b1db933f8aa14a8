from .settings import AppSettings, ListenerSettings, SmtpSettings, load_settings, load_yaml_config

__all__ = ["AppSettings", "ListenerSettings", "SmtpSettings", "load_settings", "load_yaml_config"]
