import pytest
from message import (
    CALL_TO_ACTION,
    DEFAULT_GREETING,
    PullRequest,
    build_message,
    escape_text,
    group_by_repo,
    render_pull_request,
    urgency_badges,
)


def _texts(message):
    return [block["text"]["text"] for block in message["blocks"]]


@pytest.mark.parametrize("text", ["Add feature", "fix & tidy", "", "a|b*c_"])
def test_escape_text_leaves_plain_text_alone(text):
    assert escape_text(text) == text


def test_escape_text_replaces_every_angle_bracket():
    assert escape_text("<a> & <<b>>") == "&lt;a&gt; & &lt;&lt;b&gt;&gt;"


def test_pull_request_from_api():
    pull = {
        "title": "Fix login",
        "html_url": "https://github.com/o/r/pull/1",
        "labels": [{"name": "D-1"}, {"name": "bug"}],
        "number": 1,
    }
    pr = PullRequest.from_api("r", pull)
    assert pr == PullRequest("r", "Fix login", "https://github.com/o/r/pull/1", frozenset({"D-1", "bug"}))


def test_pull_request_from_api_without_labels():
    pr = PullRequest.from_api("r", {"title": "t", "html_url": "u", "labels": None})
    assert pr.labels == frozenset()


def test_pull_request_from_api_missing_title():
    with pytest.raises(KeyError):
        PullRequest.from_api("r", {"html_url": "u"})


def test_group_by_repo_keeps_first_seen_order():
    p1 = PullRequest("repoA", "P1", "u1")
    p2 = PullRequest("repoB", "P2", "u2")
    p3 = PullRequest("repoA", "P3", "u3")
    groups = group_by_repo([p1, p2, p3])
    assert list(groups) == ["repoA", "repoB"]
    assert groups["repoA"] == [p1, p3]
    assert groups["repoB"] == [p2]


def test_urgency_badges_none():
    assert urgency_badges(frozenset({"bug", "enhancement"})) == ""


def test_urgency_badges_lower_tiers_have_no_call_to_action():
    text = urgency_badges(frozenset({"D-2", "D-1"}))
    assert text == " *`D-2`* *`D-1`*"
    assert CALL_TO_ACTION not in text


def test_urgency_badges_highest_tier_adds_call_to_action():
    assert urgency_badges(frozenset({"D-0"})) == f" *`D-0`*\n\t{CALL_TO_ACTION}"


def test_urgency_badges_all_tiers_in_order():
    text = urgency_badges(frozenset({"D-0", "D-1", "D-2", "D-3"}))
    assert text == f" *`D-3`* *`D-2`* *`D-1`* *`D-0`*\n\t{CALL_TO_ACTION}"


def test_render_pull_request_does_not_escape_url():
    pr = PullRequest("r", "<b>", "https://x/1?a=<1>")
    assert render_pull_request(pr) == "• <https://x/1?a=<1>|&lt;b&gt;>"


def test_build_message_layout():
    prs = [
        PullRequest("repoA", "Fix <bug>", "https://x/1"),
        PullRequest("repoB", "Add feature", "https://x/2", frozenset({"D-0"})),
    ]
    message = build_message(prs)
    assert message["text"] == DEFAULT_GREETING
    assert all(block["type"] == "section" for block in message["blocks"])
    assert all(block["text"]["type"] == "mrkdwn" for block in message["blocks"])
    texts = _texts(message)
    assert texts[0] == DEFAULT_GREETING
    assert texts[1] == "📌 *repoA*"
    assert texts[2] == "• <https://x/1|Fix &lt;bug&gt;>"
    assert texts[3] == "📌 *repoB*"
    assert "<https://x/2|Add feature>" in texts[4]
    assert " *`D-0`*" in texts[4]
    assert CALL_TO_ACTION in texts[4]
    assert len(texts) == 5


def test_build_message_groups_interleaved_repos():
    prs = [
        PullRequest("repoA", "P1", "u1"),
        PullRequest("repoB", "P2", "u2"),
        PullRequest("repoA", "P3", "u3"),
    ]
    assert _texts(build_message(prs))[1:] == [
        "📌 *repoA*",
        "• <u1|P1>",
        "• <u3|P3>",
        "📌 *repoB*",
        "• <u2|P2>",
    ]


def test_build_message_custom_greeting_is_deterministic():
    prs = [PullRequest("r", "t", "u", frozenset({"D-3", "D-0"}))]
    first = build_message(prs, greeting="Hello team")
    assert first == build_message(prs, greeting="Hello team")
    assert first["text"] == "Hello team"
    assert _texts(first)[0] == "Hello team"


@pytest.mark.parametrize("pull", [
    {"title": None, "html_url": "u"},
    {"title": "t", "html_url": None},
    {"title": 7, "html_url": "u"},
])
def test_pull_request_from_api_rejects_non_string_fields(pull):
    with pytest.raises(TypeError):
        PullRequest.from_api("r", pull)
