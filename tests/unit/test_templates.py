"""Unit tests for the offline template comment writer"""

from xiaoe_gateway.domain.models import StudentProfile, split_items
from xiaoe_gateway.domain.templates import TONES, TemplateCommentWriter, resolve_tone


def test_split_items_handles_mixed_delimiters_and_sentinels():
    assert split_items("认真，乐于助人、活泼;守时") == ["认真", "乐于助人", "活泼", "守时"]
    assert split_items("none") == []
    assert split_items("无") == []
    assert split_items("  ") == []


def test_resolve_tone_by_keyword():
    assert resolve_tone("严谨客观型") is TONES["strict"]
    assert resolve_tone("活泼幽默") is TONES["humorous"]
    assert resolve_tone("温和鼓励型") is TONES["encouraging"]
    assert resolve_tone("something else") is TONES["encouraging"]


def test_comment_uses_name_only_in_intro():
    profile = StudentProfile(name="王小明", role="学习委员", incidents="帮助同学补课", tags="认真,负责")

    comment = TemplateCommentWriter().write_comment(profile, "鼓励")

    assert comment.student_name == "王小明"
    assert "王小明" in comment.intro
    assert all("王小明" not in section.text for section in comment.body)
    assert "王小明" not in comment.conclusion
    assert [s.source for s in comment.body] == ["学习委员", "具体事例", "认真", "负责"]


def test_empty_profile_gets_generic_section():
    comment = TemplateCommentWriter().write_comment(StudentProfile(name="小红"), "严谨")
    assert len(comment.body) == 1
    assert comment.body[0].source == "综合表现"


def test_one_comment_per_profile_in_order():
    profiles = [StudentProfile(name=n) for n in ("甲", "乙", "丙")]
    comments = TemplateCommentWriter().write_comments(profiles, "鼓励")
    assert [c.student_name for c in comments] == ["甲", "乙", "丙"]


def test_alternatives_are_capped():
    writer = TemplateCommentWriter()
    assert len(writer.write_alternatives("你很认真。", "认真", "鼓励")) == 5
    assert len(writer.write_alternatives("你很认真。", "认真", "鼓励", count=2)) == 2
