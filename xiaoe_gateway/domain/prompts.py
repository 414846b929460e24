"""Prompt construction for comment and alternative-phrasing requests"""

from typing import List

from xiaoe_gateway.domain.models import StudentProfile, is_absent


def _field(value: str) -> str:
    return "无" if is_absent(value) else value.strip()


def format_profile(profile: StudentProfile) -> str:
    return (
        f" - 姓名: {profile.name}, 职务: {_field(profile.role)}, "
        f"具体事例: {_field(profile.incidents)}, 标签: {_field(profile.tags)}"
    )


def build_comment_prompt(profiles: List[StudentProfile], style: str) -> str:
    """
    Batched prompt asking for one comment blueprint per student.

    The vendor must answer with a JSON array of objects carrying
    studentName, intro, body[{source, text}] and conclusion.
    """
    profile_lines = "\n".join(format_profile(p) for p in profiles)
    return (
        "你是一位顶级的中文教师和语言大师，现在需要为学生生成评语“蓝图”。\n"
        f"**评语风格**: {style}\n"
        "---\n"
        "**核心指令 (必须严格遵守)**\n"
        "1. **结构化输出**: 对每个学生，都返回一个包含 'studentName', 'intro', 'body', 'conclusion' "
        "四个键的JSON对象。'studentName' 必须是学生的姓名字符串。'body' 是对象数组，"
        "每个对象包含 'source' (对应的标签或类别) 和 'text' (一句评语)。\n"
        "2. **姓名与代词规则 (绝对禁止违反)**: 在整个评语中，学生的全名只允许在 intro 部分出现一次。"
        "在 body 和 conclusion 部分，必须使用第二人称代词“你”。\n"
        "3. **内容融合规则 (高优先级)**: 如果学生档案的“职务”或“具体事例”字段不为'无'，"
        "你必须将这些信息作为评语的核心素材。\n"
        "---\n"
        "**学生档案**:\n"
        f"{profile_lines}\n"
        "---\n"
        "**输出格式**: 你的整个输出必须是一个JSON数组 [...]，数组中的每个对象都对应一个学生，"
        "顺序与学生档案一致。不要在JSON数组前后添加任何说明性文字。"
    )


def build_alternatives_prompt(text: str, tag_context: str, style: str, count: int = 5) -> str:
    return (
        f"你是一个语言表达大师。请将下面的句子，用{count}种不同的、高质量的方式重新表达，"
        f"同时保持核心意思和“{style}”的风格。句子：“{text}”。它描述的概念是“{tag_context}”。"
        f"请以JSON数组的格式返回{count}个字符串。"
    )
