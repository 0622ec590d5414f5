#!/usr/bin/env python3
"""
GitHub → Notion Pull Request Migration Script + Excel Reporting
"""

import os
import argparse
import logging
import datetime
import time
import csv
from dataclasses import dataclass, field
from typing import Optional
import httpx
import jwt
import requests
from github import Github, Auth
from github.GithubException import GithubException
from notion_client import Client
from notion_client.errors import HTTPResponseError, RequestTimeoutError
from openpyxl import Workbook
from openpyxl.styles import Font

from notion_mapping import (
    LABEL_TAGS,
    MigrationError,
    format_properties,
    load_label_tags,
    page_body,
    property_text,
)


# =============================
# CONFIG
# =============================

GITHUB_API = "https://api.github.com"
NOTION_VERSION = "2022-06-28"
PER_PAGE = 100
MAX_CHILDREN = 100
CURRENT_DATETIME = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")

SUMMARY_FIELDS = ["PR Number", "PR Title", "Status", "Notion Page"]

REPORT_HEADERS = [
    "PR Number", "PR Title", "Status", "Created At", "Driver",
    "Accountable", "Contributors", "Informed", "Services/Surfaces",
    "Review Comments", "Discussion Comments", "Notion Page"
]


@dataclass
class MigrationConfig:
    owner: str
    repo: str
    database_id: str
    dry_run: bool = True
    label_tags: dict = field(default_factory=lambda: dict(LABEL_TAGS))
    summary_file: Optional[str] = None


# =============================
# UTIL FUNCTIONS
# =============================

def log_and_print(message, level="info"):
    timestamp = datetime.datetime.now().strftime("%H:%M:%S")
    if level == "error":
        logging.error(message)
    elif level == "warning":
        logging.warning(message)
    else:
        logging.info(message)
    print(f"[{level.upper()} {timestamp}] {message}")


def write_migration_summary(path, result):
    file_exists = os.path.isfile(path)

    with open(path, "a", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=SUMMARY_FIELDS)

        if not file_exists:
            writer.writeheader()

        writer.writerow({
            "PR Number": result["number"],
            "PR Title": result["title"],
            "Status": property_text(result["properties"], "Status"),
            "Notion Page": result["page_url"]
        })


# =============================
# GITHUB APP AUTH
# =============================

def generate_github_app_token(app_id, installation_id, private_key_path, api_url=GITHUB_API):
    with open(private_key_path, "r") as f:
        private_key = f.read()

    now = int(time.time())
    payload = {
        "iat": now - 60,
        "exp": now + (10 * 60),
        "iss": app_id
    }

    encoded_jwt = jwt.encode(payload, private_key, algorithm="RS256")

    headers = {
        "Authorization": f"Bearer {encoded_jwt}",
        "Accept": "application/vnd.github+json"
    }

    url = f"{api_url}/app/installations/{installation_id}/access_tokens"
    response = requests.post(url, headers=headers)

    if response.status_code != 201:
        raise MigrationError(f"GitHub App token error: {response.text}")

    return response.json()["token"]


# =============================
# NOTION
# =============================

def get_database(notion, database_id):
    db = notion.databases.retrieve(database_id=database_id)
    if not db:
        raise MigrationError(f"Could not find Notion database {database_id}")
    return db


def create_page(notion, database_id, properties, blocks):
    # pages.create and blocks.children.append both cap children at 100
    page = notion.pages.create(
        parent={"database_id": database_id},
        properties=properties,
        children=blocks[:MAX_CHILDREN]
    )

    for start in range(MAX_CHILDREN, len(blocks), MAX_CHILDREN):
        notion.blocks.children.append(
            block_id=page["id"],
            children=blocks[start:start + MAX_CHILDREN]
        )

    log_and_print(f"Created page {page['url']}", "success")
    return page["url"]


# =============================
# PULL REQUEST MIGRATION
# =============================

def fetch_pull_requests(gh_repo):
    prs = []
    for state in ("open", "closed"):
        prs.extend(gh_repo.get_pulls(state=state))
    return prs


def migrate_pull_request(pr, notion, config):
    reviews = list(pr.get_reviews())
    properties = format_properties(pr, reviews, config.label_tags)

    review_comments = list(pr.get_review_comments())
    issue_comments = list(pr.get_issue_comments())
    blocks = page_body(pr, review_comments, issue_comments)

    if config.dry_run:
        log_and_print(f"Dry run: skipping page for PR #{pr.number} ({len(blocks)} blocks)")
        page_url = "dry-run"
    else:
        page_url = create_page(notion, config.database_id, properties, blocks)

    return {
        "number": pr.number,
        "title": pr.title,
        "properties": properties,
        "review_comments": len(review_comments),
        "issue_comments": len(issue_comments),
        "page_url": page_url
    }


def migrate_pull_requests(gh, notion, config):
    """
    Copy every open and closed PR of owner/repo into the Notion database.

    Runs sequentially and stops at the first API error; PRs after the
    failing one are not processed.
    """
    get_database(notion, config.database_id)

    gh_repo = gh.get_repo(f"{config.owner}/{config.repo}")
    prs = fetch_pull_requests(gh_repo)
    log_and_print(f"Processing {len(prs)} PRs from {config.owner}/{config.repo}")

    results = []
    for pr in prs:
        log_and_print(f"Migrating PR #{pr.number}: {pr.title}")
        result = migrate_pull_request(pr, notion, config)
        if config.summary_file:
            write_migration_summary(config.summary_file, result)
        results.append(result)

    return results


# =============================
# EXCEL REPORT
# =============================

def write_excel_report(path, results):
    wb = Workbook()
    ws = wb.active
    ws.title = "PR Migration"

    ws.append(REPORT_HEADERS)
    for col in ws[1]:
        col.font = Font(bold=True)

    for result in results:
        properties = result["properties"]
        ws.append([
            result["number"],
            result["title"],
            property_text(properties, "Status"),
            properties["Created At"]["date"]["start"],
            property_text(properties, "Driver"),
            property_text(properties, "Accountable"),
            property_text(properties, "Contributors"),
            property_text(properties, "Informed"),
            property_text(properties, "Services/Surfaces"),
            result["review_comments"],
            result["issue_comments"],
            result["page_url"]
        ])

    wb.save(path)


# =============================
# MAIN
# =============================

def build_parser():
    parser = argparse.ArgumentParser(description="GitHub → Notion Pull Request Migration Tool")

    parser.add_argument("--notion-token", required=True)
    parser.add_argument("--database-id", required=True)
    parser.add_argument("--owner", required=True)
    parser.add_argument("--repo", required=True)
    parser.add_argument("--dry-run", action=argparse.BooleanOptionalAction, default=True)
    parser.add_argument("--label-map")
    parser.add_argument("--output-dir", default="output")
    parser.add_argument("--generate-report", action="store_true")
    parser.add_argument("--github-api-url", default=GITHUB_API)

    auth_group = parser.add_mutually_exclusive_group(required=True)
    auth_group.add_argument("--github-token")
    auth_group.add_argument("--use-app", action="store_true")

    parser.add_argument("--github-app-id")
    parser.add_argument("--github-installation-id")
    parser.add_argument("--github-private-key")

    return parser


def main(argv=None):

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.use_app and not (args.github_app_id and args.github_installation_id and args.github_private_key):
        parser.error("--use-app requires app id, installation id, private key")

    os.makedirs(args.output_dir, exist_ok=True)

    logging.basicConfig(
        filename=os.path.join(args.output_dir, f"migration_{CURRENT_DATETIME}.log"),
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        force=True
    )

    if args.dry_run:
        log_and_print("Dry run enabled: no Notion pages will be created", "warning")

    try:
        # AUTH
        if args.use_app:
            github_token = generate_github_app_token(
                args.github_app_id,
                args.github_installation_id,
                args.github_private_key,
                args.github_api_url
            )
        else:
            github_token = args.github_token

        gh = Github(auth=Auth.Token(github_token), base_url=args.github_api_url, per_page=PER_PAGE)
        notion = Client(auth=args.notion_token, notion_version=NOTION_VERSION)

        label_tags = load_label_tags(args.label_map) if args.label_map else dict(LABEL_TAGS)

        config = MigrationConfig(
            owner=args.owner,
            repo=args.repo,
            database_id=args.database_id,
            dry_run=args.dry_run,
            label_tags=label_tags,
            summary_file=os.path.join(args.output_dir, f"pr_summary_{CURRENT_DATETIME}.csv")
        )

        results = migrate_pull_requests(gh, notion, config)

        if args.generate_report:
            report_path = os.path.join(args.output_dir, f"pr_migration_report_{CURRENT_DATETIME}.xlsx")
            write_excel_report(report_path, results)
            log_and_print(f"Excel report generated: {report_path}", "success")

    except (GithubException, HTTPResponseError, RequestTimeoutError, httpx.HTTPError,
            requests.RequestException, MigrationError, OSError, ValueError) as e:
        log_and_print(f"Migration aborted: {e}", "error")
        return

    log_and_print(f"All {len(results)} pull requests processed.", "success")


if __name__ == "__main__":
    main()
