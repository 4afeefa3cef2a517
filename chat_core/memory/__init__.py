from chat_core.memory.name_extractor import DEFAULT_USER_NAME, extract_user_name, find_introduced_name

__all__ = ["DEFAULT_USER_NAME", "extract_user_name", "find_introduced_name"]
