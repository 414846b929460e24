"""Offline template comment writer, used as the "template" model

Produces the same shape a vendor returns, from fixed phrase banks keyed by
comment style. Output is deterministic for a given profile and style.
"""

from dataclasses import dataclass
from typing import Dict, List

from xiaoe_gateway.domain.models import CommentSection, StudentComment, StudentProfile


@dataclass(frozen=True)
class Tone:
    intro: str
    tag: str
    incident: str
    role: str
    generic: str
    conclusion: str


TONES: Dict[str, Tone] = {
    "encouraging": Tone(
        intro="{name}是一个让老师感到欣慰的孩子。",
        tag="你身上“{item}”的特点让人印象深刻，继续保持下去吧！",
        incident="还记得{item}吗？那一刻的你格外闪亮。",
        role="作为{item}，你认真负责，是同学们的好榜样。",
        generic="这一学期你在各方面都有进步，老师都看在眼里。",
        conclusion="相信你只要坚持努力，一定会越来越优秀！",
    ),
    "strict": Tone(
        intro="{name}本学期总体表现稳定。",
        tag="你在“{item}”方面表现突出，但仍需精益求精。",
        incident="{item}一事体现了你的能力，也提醒你注意细节。",
        role="担任{item}期间，你尽职尽责，希望继续提高管理水平。",
        generic="你的学习态度端正，但在主动性上还有提升空间。",
        conclusion="希望你正视不足，制定计划，争取更大进步。",
    ),
    "humorous": Tone(
        intro="报告！发现一位名叫{name}的宝藏同学。",
        tag="“{item}”这项技能你已经点满，全班都想拜师学艺。",
        incident="{item}的名场面，老师可以记一整年。",
        role="身为{item}，你简直是班级里的“定海神针”。",
        generic="你的存在让教室的气氛都明亮了几分。",
        conclusion="新学期继续升级打怪，老师在终点等你拿满分！",
    ),
}

DEFAULT_TONE = "encouraging"

_STYLE_KEYWORDS = {
    "strict": ("严", "客观", "strict", "formal"),
    "humorous": ("幽默", "活泼", "风趣", "humor", "fun"),
    "encouraging": ("鼓励", "温", "encourag", "warm"),
}


def resolve_tone(style: str) -> Tone:
    lowered = (style or "").lower()
    for key, keywords in _STYLE_KEYWORDS.items():
        if any(word in lowered for word in keywords):
            return TONES[key]
    return TONES[DEFAULT_TONE]


class TemplateCommentWriter:
    """Fill tone templates from profile fields"""

    def write_comment(self, profile: StudentProfile, style: str) -> StudentComment:
        tone = resolve_tone(style)
        body: List[CommentSection] = []

        if profile.has_role:
            body.append(CommentSection(source=profile.role.strip(), text=tone.role.format(item=profile.role.strip())))
        for incident in profile.incident_list:
            body.append(CommentSection(source="具体事例", text=tone.incident.format(item=incident)))
        for tag in profile.tag_list:
            body.append(CommentSection(source=tag, text=tone.tag.format(item=tag)))
        if not body:
            body.append(CommentSection(source="综合表现", text=tone.generic))

        return StudentComment(
            student_name=profile.name,
            intro=tone.intro.format(name=profile.name),
            body=body,
            conclusion=tone.conclusion,
        )

    def write_comments(self, profiles: List[StudentProfile], style: str) -> List[StudentComment]:
        return [self.write_comment(p, style) for p in profiles]

    def write_alternatives(self, text: str, tag_context: str, style: str, count: int = 5) -> List[str]:
        core = text.strip().rstrip("。！!.")
        variants = [
            f"{core}。",
            f"在“{tag_context}”方面，{core}。",
            f"老师注意到，{core}。",
            f"值得一提的是，{core}。",
            f"{core}，这一点让人欣喜。",
        ]
        return variants[:count]
