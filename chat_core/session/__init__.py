from chat_core.session.controller import FALLBACK_ERROR_TEXT, SessionController

__all__ = ["FALLBACK_ERROR_TEXT", "SessionController"]
