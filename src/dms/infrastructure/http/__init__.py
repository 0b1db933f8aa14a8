from .callback_listener import CallbackListener, create_app

__all__ = ["CallbackListener", "create_app"]
