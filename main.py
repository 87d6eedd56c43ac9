#!/usr/bin/env python3
"""
Pull request review reminder
Posts the open pull requests of the configured repositories to a Slack channel.
Optional defaults can be kept in a YAML file pointed to by CONFIG_PATH.
"""

import os
import re
import sys
import json
import logging
import yaml
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
import requests
from message import DEFAULT_GREETING, PullRequest, build_message

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
logger = logging.getLogger("request-pr-review")

PUBLIC_HOST = "github.com"
PUBLIC_API_BASE = "https://api.github.com/repos"
SLACK_API_URL = "https://slack.com/api"
MODES = {"send", "dry-run"}
TRUTHY = {"1", "true", "yes", "on"}


class ReminderError(RuntimeError):
    pass


class ConfigError(ReminderError):
    pass


class InvalidRepoUrl(ConfigError):
    pass


class SlackDeliveryError(ReminderError):
    pass


@dataclass(frozen=True)
class Config:
    token: str
    slack_bot_token: str
    repo_urls: List[str]
    channel: str
    greeting: str = DEFAULT_GREETING
    slack_api_url: str = SLACK_API_URL
    mode: str = "send"
    verbose: bool = False

    @property
    def dry_run(self) -> bool:
        return self.mode == "dry-run"


def get_input(name: str, environ: Mapping[str, str]) -> str:
    return (environ.get(f"INPUT_{name.replace(' ', '_').upper()}") or "").strip()


def split_repo_urls(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        raise ConfigError(f"repo_urls must be a list or comma-separated string, got {type(value).__name__}")
    return [str(url).strip() for url in (value or []) if str(url).strip()]


def load_file_config(path: Optional[str]) -> Dict[str, Any]:
    # Keys missing from the file keep these defaults.
    defaults = {
        "repo_urls": [],
        "channel": "",
        "greeting": DEFAULT_GREETING,
        "slack_api_url": SLACK_API_URL,
        "mode": "send",
    }
    if not path:
        return defaults
    if not os.path.exists(path):
        logger.warning(f"Config file not found, using defaults: {path}")
        return defaults
    try:
        with open(path, "r") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config {path}: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(cfg).__name__}")
    logger.debug(f"Loaded config from {path}")
    merged = defaults.copy()
    merged.update({k: v for k, v in cfg.items() if v is not None})
    merged["repo_urls"] = split_repo_urls(merged["repo_urls"])
    return merged


def is_verbose(environ: Mapping[str, str]) -> bool:
    return (environ.get("VERBOSE") or "").lower() in TRUTHY


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    env = os.environ if environ is None else environ
    file_cfg = load_file_config(env.get("CONFIG_PATH"))

    mode = (env.get("MODE") or str(file_cfg["mode"])).strip().lower()
    if mode not in MODES:
        raise ConfigError(f"Unknown MODE {mode!r}, expected one of {sorted(MODES)}")

    token = get_input("token", env)
    slack_bot_token = get_input("slackBotToken", env)
    repo_urls = split_repo_urls(get_input("repoUrls", env)) or file_cfg["repo_urls"]
    channel = get_input("channel", env) or str(file_cfg["channel"] or "").strip()

    required = {"token": token, "repoUrls": repo_urls, "channel": channel}
    if mode != "dry-run":
        required["slackBotToken"] = slack_bot_token
    for name, value in required.items():
        if not value:
            raise ConfigError(f"Input required and not supplied: {name}")
    for repo_url in repo_urls:
        refine_to_api_url(repo_url)

    return Config(
        token=token,
        slack_bot_token=slack_bot_token,
        repo_urls=repo_urls,
        channel=channel,
        greeting=str(file_cfg["greeting"]),
        slack_api_url=str(file_cfg["slack_api_url"]),
        mode=mode,
        verbose=is_verbose(env),
    )


def refine_to_api_url(repo_url: str) -> str:
    stripped = re.sub(r"^https?://", "", repo_url.strip()).rstrip("/")
    host, _, path = stripped.partition("/")
    if not host or not path:
        raise InvalidRepoUrl(f"Invalid repository URL: {repo_url!r}")
    if host.lower() == PUBLIC_HOST:
        return f"{PUBLIC_API_BASE}/{path}"
    return f"https://{host}/api/v3/repos/{path}"


def repo_display_name(repo_url: str) -> str:
    return repo_url.strip().rstrip("/").split("/")[-1]


def fetch_pulls(api_url: str, token: str) -> List[Dict[str, Any]]:
    url = f"{api_url}/pulls"
    headers = {"Authorization": f"Bearer {token}", "Accept": "application/vnd.github+json"}
    logger.debug(f"GET {url}")
    resp = requests.get(url, headers=headers)
    resp.raise_for_status()
    pulls = resp.json()
    if not isinstance(pulls, list):
        raise RuntimeError(f"Unexpected pulls response from {url}: {type(pulls).__name__}")
    return pulls


def send_slack(message: Dict[str, Any], channel: str, bot_token: str, api_url: str = SLACK_API_URL) -> Dict[str, Any]:
    url = f"{api_url.rstrip('/')}/chat.postMessage"
    headers = {"Authorization": f"Bearer {bot_token}", "Content-Type": "application/json"}
    payload = {"channel": channel, **message}
    try:
        resp = requests.post(url, json=payload, headers=headers)
    except requests.RequestException as e:
        raise SlackDeliveryError(f"Slack API Error: {e}") from e
    if resp.status_code >= 400:
        snippet = (resp.text or "").strip().replace("\n", " ")[:500]
        raise SlackDeliveryError(f"Slack API Error: status {resp.status_code}: {snippet}")
    try:
        data = resp.json()
    except ValueError:
        snippet = (resp.text or "").strip().replace("\n", " ")[:500]
        raise SlackDeliveryError(f"Slack API Error: response not JSON: {snippet}") from None
    if not isinstance(data, dict):
        raise SlackDeliveryError(f"Slack API Error: unexpected response {data!r}")
    if not data.get("ok"):
        raise SlackDeliveryError(f"Slack API Error: {data.get('error', 'unknown_error')}")
    return data


def collect_pull_requests(config: Config) -> List[PullRequest]:
    logger.info(f"Fetching PRs for: {', '.join(config.repo_urls)}")
    all_prs: List[PullRequest] = []
    for repo_url in config.repo_urls:
        logger.info(f"Processing repo: {repo_url}")
        api_url = refine_to_api_url(repo_url)
        logger.info(f"Fetching PRs from: {api_url}")
        try:
            pulls = fetch_pulls(api_url, config.token)
            repo = repo_display_name(repo_url)
            prs = [PullRequest.from_api(repo, pull) for pull in pulls]
        except (requests.RequestException, RuntimeError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"⚠️ Failed to fetch PRs for {repo_url}: {e}")
            continue
        logger.info(f"Found {len(prs)} PRs for {repo_url}")
        all_prs.extend(prs)
    return all_prs


def run(config: Config) -> None:
    prs = collect_pull_requests(config)
    if not prs:
        logger.info("No PRs found for review.")
        return
    message = build_message(prs, greeting=config.greeting)
    if config.dry_run:
        payload = {"channel": config.channel, **message}
        logger.info(f"[DRY-RUN] Would send Slack message:\n{json.dumps(payload, ensure_ascii=False, indent=2)}")
        return
    logger.info("Sending Slack message with all PRs...")
    send_slack(message, config.channel, config.slack_bot_token, config.slack_api_url)
    logger.info("Message sent successfully.")


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    if is_verbose(env):
        logger.setLevel(logging.DEBUG)
    try:
        run(load_config(env))
    except ReminderError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
