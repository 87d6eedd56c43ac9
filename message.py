import re
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Tuple

D0 = "D-0"
D1 = "D-1"
D2 = "D-2"
D3 = "D-3"

# Rendered in this order; only D-0 carries the call to action.
URGENCY_TIERS: List[Tuple[str, bool]] = [
    (D3, False),
    (D2, False),
    (D1, False),
    (D0, True),
]

DEFAULT_GREETING = (
    "👋👋 Good morning!\n"
    "Some of your teammates' pull requests are waiting for a review. Please take a look:"
)
CALL_TO_ACTION = "☝️ This is an urgent PR. Please review it right away!🚨"

ESCAPE_PAIRS = {"<": "&lt;", ">": "&gt;"}


@dataclass(frozen=True)
class PullRequest:
    repo: str
    title: str
    url: str
    labels: FrozenSet[str] = frozenset()

    @classmethod
    def from_api(cls, repo: str, pull: Dict[str, Any]) -> "PullRequest":
        title, url = pull["title"], pull["html_url"]
        if not isinstance(title, str) or not isinstance(url, str):
            raise TypeError(f"Pull request title and html_url must be strings, got {title!r} and {url!r}")
        labels = frozenset(label["name"] for label in (pull.get("labels") or []))
        return cls(repo=repo, title=title, url=url, labels=labels)


def escape_text(text: str) -> str:
    return re.sub(r"[<>]", lambda m: ESCAPE_PAIRS[m.group(0)], text)


def group_by_repo(prs: Iterable[PullRequest]) -> Dict[str, List[PullRequest]]:
    groups: Dict[str, List[PullRequest]] = {}
    for pr in prs:
        groups.setdefault(pr.repo, []).append(pr)
    return groups


def urgency_badges(labels: FrozenSet[str]) -> str:
    text = ""
    for tier, urgent in URGENCY_TIERS:
        if tier not in labels:
            continue
        text += f" *`{tier}`*"
        if urgent:
            text += f"\n\t{CALL_TO_ACTION}"
    return text


def render_pull_request(pr: PullRequest) -> str:
    return f"• <{pr.url}|{escape_text(pr.title)}>{urgency_badges(pr.labels)}"


def section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def build_message(prs: Iterable[PullRequest], greeting: str = DEFAULT_GREETING) -> Dict[str, Any]:
    blocks = [section(greeting)]
    for repo, repo_prs in group_by_repo(prs).items():
        blocks.append(section(f"📌 *{repo}*"))
        blocks.extend(section(render_pull_request(pr)) for pr in repo_prs)
    return {"text": greeting, "blocks": blocks}
