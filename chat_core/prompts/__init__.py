"""developer 指令渲染与请求指令序列构造。

请求序列固定为：
    1. 一条 developer 指令（系统提示词，带上记住的用户名）；
    2. 历史中的每一条消息（user → user，bot → assistant）；
    3. 一条 user 指令，内容为本次输入原文。
"""

from typing import Iterable, List, Optional

from chat_core.domain.models import Message, RemoteInstruction
from chat_core.memory.name_extractor import DEFAULT_USER_NAME


NAME_PLACEHOLDER = "{user_name}"

DEFAULT_SYSTEM_PROMPT = (
    'You are a helpful AI assistant. The user\'s name is "{user_name}" if they told you. '
    "Always remember it and use it in responses. Also, remember the topics you have discussed."
)


def render_system_prompt(template: Optional[str], user_name: Optional[str]) -> str:
    """把用户名代入模板。

    模板为空时使用 DEFAULT_SYSTEM_PROMPT。模板里没有 {user_name} 占位符、
    但已经知道真实用户名时，在末尾补一句说明。
    """

    name = user_name or DEFAULT_USER_NAME
    if not template or not template.strip():
        return DEFAULT_SYSTEM_PROMPT.replace(NAME_PLACEHOLDER, name)
    if NAME_PLACEHOLDER in template:
        return template.replace(NAME_PLACEHOLDER, name)
    if user_name and user_name != DEFAULT_USER_NAME:
        return f'{template.rstrip()}\nThe user\'s name is "{user_name}".'
    return template


def to_instruction(message: Message) -> RemoteInstruction:
    role = "assistant" if message.sender == "bot" else "user"
    return RemoteInstruction(role=role, content=message.content)


def build_instructions(
    history: Iterable[Message],
    user_input: str,
    system_prompt_template: Optional[str],
    remembered_name: Optional[str],
) -> List[RemoteInstruction]:
    instructions = [
        RemoteInstruction(role="developer", content=render_system_prompt(system_prompt_template, remembered_name))
    ]
    instructions.extend(to_instruction(m) for m in history)
    instructions.append(RemoteInstruction(role="user", content=user_input))
    return instructions
