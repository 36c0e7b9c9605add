import base64
import logging
import re
from datetime import date, datetime
from typing import List, Optional

import requests
from requests import Session

from .models import UNASSIGNED, Issue, IssueLink, RetrievalError, WorkLog


logger = logging.getLogger(__name__)

ISSUE_KEY_PATTERN = re.compile(r"^[A-Z][A-Z0-9]*-\d+$")
SPRINT_FIELD_ID = "customfield_10020"
ISSUE_FIELDS = [
    "summary",
    "status",
    "assignee",
    "priority",
    "issuetype",
    "parent",
    "timeestimate",
    "timeoriginalestimate",
    "created",
    "resolutiondate",
    "duedate",
    "issuelinks",
    SPRINT_FIELD_ID,
]


def is_issue_key(value: str) -> bool:
    return bool(value) and bool(ISSUE_KEY_PATTERN.match(value))


def assignee_name(value) -> str:
    """Resolve a tracker user (string, user object or nothing) to a display name."""
    if not value:
        return UNASSIGNED
    if isinstance(value, str):
        return value
    return value.get("displayName") or value.get("name") or UNASSIGNED


def parse_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable timestamp %r", value)
        return None


def parse_date(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        logger.warning("Unparseable date %r", value)
        return None


def seconds_to_hours(value) -> Optional[float]:
    if value is None:
        return None
    return float(value) / 3600


def _name(value) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("name")
    return value


def parse_link(raw: dict) -> IssueLink:
    link_type = raw.get("type") or {}
    inward_issue = raw.get("inwardIssue") or {}
    outward_issue = raw.get("outwardIssue") or {}
    return IssueLink(
        type_name=link_type.get("name", ""),
        inward=link_type.get("inward", ""),
        outward=link_type.get("outward", ""),
        inward_issue=inward_issue.get("key"),
        outward_issue=outward_issue.get("key"),
        inward_status=_name((inward_issue.get("fields") or {}).get("status")),
        outward_status=_name((outward_issue.get("fields") or {}).get("status")),
    )


def parse_issue(raw: dict) -> Issue:
    """Build an Issue from a Jira REST issue payload."""
    if not raw.get("key"):
        raise ValueError("Issue payload without key")
    fields = raw.get("fields") or {}
    sprints = []
    for sprint in fields.get(SPRINT_FIELD_ID) or []:
        name = sprint.get("name") if isinstance(sprint, dict) else sprint
        if name:
            sprints.append(str(name))
    return Issue(
        key=raw["key"],
        summary=fields.get("summary"),
        status=_name(fields.get("status")),
        assignee=assignee_name(fields.get("assignee")),
        priority=_name(fields.get("priority")),
        issue_type=_name(fields.get("issuetype")),
        parent_key=(fields.get("parent") or {}).get("key"),
        original_estimate_hours=seconds_to_hours(fields.get("timeoriginalestimate")),
        remaining_estimate_hours=seconds_to_hours(fields.get("timeestimate")),
        created=parse_datetime(fields.get("created")),
        resolved=parse_datetime(fields.get("resolutiondate")),
        due_date=parse_date(fields.get("duedate")),
        links=[parse_link(link) for link in fields.get("issuelinks") or []],
        sprints=sprints,
    )


def parse_worklog(raw: dict, issue_key: Optional[str] = None) -> WorkLog:
    key = raw.get("issueKey") or issue_key
    if not key:
        raise ValueError("Worklog payload without issue key")
    return WorkLog(
        issue_key=key,
        author=assignee_name(raw.get("author")),
        hours=float(raw.get("timeSpentSeconds") or 0) / 3600,
        started=parse_datetime(raw.get("started")),
        category=raw.get("category"),
        comment=raw.get("comment") if isinstance(raw.get("comment"), str) else None,
    )


class JiraClient:
    """Read-only Jira access used as an issue lookup."""

    def __init__(self, base_url: str, email: str, token: str, session: Optional[Session] = None, timeout: int = 30):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.session = session or Session()
        auth_base64 = base64.b64encode(f"{email}:{token}".encode("ascii")).decode("ascii")
        self.headers = {
            "Authorization": f"Basic {auth_base64}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _get(self, path: str, params: dict, key: str):
        url = f"{self.base_url}/rest/api/3{path}"
        try:
            response = self.session.get(url, params=params, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RetrievalError(key, str(exc)) from exc
        if response.status_code != 200:
            raise RetrievalError(key, f"HTTP {response.status_code}: {response.text[:200]}")
        return response.json()

    def get_issue(self, key: str) -> Issue:
        data = self._get(f"/issue/{key}", {"fields": ",".join(ISSUE_FIELDS)}, key)
        return parse_issue(data)

    def search(self, jql: str, page_size: int = 100, max_results: int = 1000) -> List[Issue]:
        """Run a JQL search, following nextPageToken pages up to max_results issues."""
        issues = []
        params = {"jql": jql, "maxResults": page_size, "fields": ",".join(ISSUE_FIELDS)}
        while len(issues) < max_results:
            data = self._get("/search/jql", params, jql)
            batch = data.get("issues", [])
            issues.extend(parse_issue(raw) for raw in batch)
            token = data.get("nextPageToken")
            if not batch or not token or data.get("isLast"):
                break
            params = dict(params, nextPageToken=token)
        return issues[:max_results]

    def get_worklogs(self, key: str) -> List[WorkLog]:
        data = self._get(f"/issue/{key}/worklog", {}, key)
        return [parse_worklog(raw, key) for raw in data.get("worklogs", [])]

    __call__ = get_issue
