import pytest

from casebook.cases.errors import CaseValidationError
from casebook.datatypes.case_datatypes import (
    CaseDraft,
    CaseField,
    CasePage,
    CaseStats,
    CaseStatus,
    CaseType,
    zero_type_counts,
)


def test_case_type_parse_accepts_loose_input():
    assert CaseType.parse(" BAN ") is CaseType.BAN
    assert CaseType.parse(CaseType.MASSMUTE) is CaseType.MASSMUTE
    with pytest.raises(CaseValidationError):
        CaseType.parse("smite")


def test_status_and_field_parse():
    assert CaseStatus.parse("Closed") is CaseStatus.CLOSED
    assert CaseField.parse("notes") is CaseField.NOTES
    with pytest.raises(CaseValidationError):
        CaseStatus.parse("open")
    with pytest.raises(CaseValidationError):
        CaseField.parse("moderator_id")


def test_draft_canonicalises_references():
    draft = CaseDraft(guild_id="1", case_type="warn", user_id=2, moderator_id=3, channel_id=" 44 ", message_id=55)

    assert draft.case_type is CaseType.WARN
    assert str(draft.guild_id) == "1"
    assert draft.channel_id == "44"
    assert draft.message_id == "55"


def test_draft_rejects_bad_channel():
    with pytest.raises(CaseValidationError):
        CaseDraft(guild_id=1, case_type="warn", user_id=2, moderator_id=3, channel_id="general")


def test_case_page_navigation():
    page = CasePage(cases=[], total_count=35, page=2, limit=10)
    assert page.total_pages == 4
    assert page.has_next is True
    assert CasePage(cases=[], total_count=0, page=1, limit=10).total_pages == 0


def test_stats_defaults_cover_every_type():
    stats = CaseStats.empty()
    assert stats.total_cases == 0
    assert stats.cases_by_type == zero_type_counts()
    assert len(stats.cases_by_type) == len(CaseType)
    assert CaseStats.empty().cases_by_type is not stats.cases_by_type
