"""
GitHub pull request → Notion page property and block mapping
"""

import json


# =============================
# CONFIG
# =============================

MAX_TEXT_LENGTH = 2000
TRUNCATED_LENGTH = 1990
SPEAKER_MARKER = "\U0001F5E3\uFE0F "

STATUS_APPROVED = {"name": "Approved", "color": "green"}
STATUS_SHELVED = {"name": "Shelved", "color": "red"}
STATUS_FEEDBACK_REQUESTED = {"name": "Feedback Requested", "color": "brown"}

TYPE_LEGACY = {"name": "legacy", "color": "blue"}
SURFACE_COLOR = "blue"

LABEL_TAGS = {
    "data": {"informed": ["data"]},
    "desktop": {"informed": ["guild-surfaces"], "surfaces": ["desktop"]},
    "marketplace-core": {"informed": ["monetization"]},
    "search": {"informed": ["search"]},
    "sig-backend": {"informed": ["guild-api"]},
    "sre": {"informed": ["sre"]},
    "studio": {"informed": ["ltb"]},
    "surfaces": {"informed": ["guild-surfaces"]},
    "vert-cc": {"informed": ["ltb"]},
    "vert-gear": {"informed": ["creator tools", "monetization"]},
    "vert-sounds": {"informed": ["catalog"]},
}


class MigrationError(Exception):
    pass


# =============================
# UTIL FUNCTIONS
# =============================

def unique(values):
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def text(content, link=None):
    run = {"type": "text", "text": {"content": content}}
    if link:
        run["text"]["link"] = {"url": link}
    return run


def rich_text_property(values):
    return {"rich_text": [text(", ".join(values))]}


def multi_select_property(options):
    return {"multi_select": list(options)}


def heading(level, content, link=None):
    block_type = f"heading_{level}"
    return {
        "object": "block",
        "type": block_type,
        block_type: {"rich_text": [text(content, link)]},
    }


def paragraph(runs):
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": runs},
    }


def split_text(content, size=MAX_TEXT_LENGTH):
    if not content:
        return [""]
    return [content[i:i + size] for i in range(0, len(content), size)]


def login_of(user):
    if user is None:
        return None
    return user.login


# =============================
# LABEL TABLE
# =============================

def load_label_tags(path):
    """Read a JSON label table of the same shape as LABEL_TAGS."""
    with open(path, "r", encoding="utf-8-sig") as f:
        table = json.load(f)

    if not isinstance(table, dict):
        raise MigrationError(f"Label map {path} must be a JSON object")

    for label, tags in table.items():
        if not isinstance(tags, dict):
            raise MigrationError(f"Label map entry '{label}' must be an object")
        unknown = set(tags) - {"informed", "surfaces"}
        if unknown:
            raise MigrationError(
                f"Label map entry '{label}' has unknown keys: {', '.join(sorted(unknown))}"
            )
        for key, values in tags.items():
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                raise MigrationError(f"Label map entry '{label}.{key}' must be a list of strings")

    return table


def map_labels(label_names, label_tags=None):
    """Return (informed, surfaces) tags for the given label names."""
    if label_tags is None:
        label_tags = LABEL_TAGS

    informed = []
    surfaces = []
    for name in label_names:
        tags = label_tags.get(name, {})
        informed.extend(tags.get("informed", []))
        surfaces.extend(tags.get("surfaces", []))

    return unique(informed), unique(surfaces)


# =============================
# STATUS & REVIEWERS
# =============================

def derive_status(pr):
    if pr.state == "open":
        # drafts are not distinguished from regular open PRs
        return dict(STATUS_FEEDBACK_REQUESTED)
    if pr.closed_at is not None and pr.merged_at is None:
        return dict(STATUS_SHELVED)
    return dict(STATUS_APPROVED)


def partition_reviewers(reviews):
    """
    Split everyone who submitted a review into (accountable, informed).

    A login with at least one APPROVED review is accountable, every other
    reviewer is informed. Each login appears in exactly one list.
    """
    reviewers = []
    approvers = set()
    for review in reviews:
        login = login_of(review.user)
        if login is None:
            continue
        reviewers.append(login)
        if review.state == "APPROVED":
            approvers.add(login)

    reviewers = unique(reviewers)
    accountable = [login for login in reviewers if login in approvers]
    informed = [login for login in reviewers if login not in approvers]
    return accountable, informed


def collect_contributors(requested_reviewers):
    return unique(
        login for login in (login_of(user) for user in requested_reviewers)
        if login is not None
    )


# =============================
# PROPERTIES
# =============================

def format_properties(pr, reviews, label_tags=None):
    properties = {
        "Name": {"title": [text(pr.title or "")]},
        "Status": multi_select_property([derive_status(pr)]),
        "Type": multi_select_property([dict(TYPE_LEGACY)]),
        "Created At": {"date": {"start": pr.created_at.isoformat()}},
    }

    driver = login_of(pr.user)
    if driver:
        properties["Driver"] = rich_text_property([driver])

    accountable, informed_reviewers = partition_reviewers(reviews)
    informed_teams, surfaces = map_labels([label.name for label in pr.labels], label_tags)

    properties["Accountable"] = rich_text_property(accountable)
    properties["Contributors"] = rich_text_property(
        collect_contributors(pr.requested_reviewers)
    )
    properties["Informed"] = rich_text_property(unique(informed_reviewers + informed_teams))
    properties["Services/Surfaces"] = multi_select_property(
        {"name": name, "color": SURFACE_COLOR} for name in surfaces
    )

    return properties


# =============================
# PAGE BODY
# =============================

def truncate_comment(body):
    if len(body) > MAX_TEXT_LENGTH:
        return body[:TRUNCATED_LENGTH] + "..."
    return body


def comment_paragraph(comment):
    login = login_of(comment.user) or "ghost"
    created = comment.created_at.strftime("%Y-%m-%d at %H:%M")
    return paragraph([
        text(SPEAKER_MARKER),
        text(f"{login} on {created}: ", comment.html_url),
        text(truncate_comment(comment.body or "")),
    ])


def page_body(pr, review_comments, issue_comments):
    blocks = [
        heading(1, "URL to Original PR", pr.html_url),
        heading(1, "Description"),
    ]
    blocks.extend(paragraph([text(chunk)]) for chunk in split_text(pr.body or ""))
    blocks.append(heading(1, "Comments"))

    if review_comments:
        blocks.append(heading(2, "Review comments"))
        blocks.extend(comment_paragraph(c) for c in review_comments)

    if issue_comments:
        blocks.append(heading(2, "In-line comments"))
        blocks.extend(comment_paragraph(c) for c in issue_comments)

    return blocks


def property_text(properties, name):
    """Flatten a rich_text or multi_select property back to a display string."""
    prop = properties.get(name)
    if not prop:
        return ""
    if "rich_text" in prop:
        return "".join(run["text"]["content"] for run in prop["rich_text"])
    if "multi_select" in prop:
        return ", ".join(option["name"] for option in prop["multi_select"])
    return ""
