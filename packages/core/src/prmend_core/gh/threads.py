"""Resolve the review thread that a REST review comment started.

REST comment ids (databaseId) and GraphQL review-thread ids are separate
identifier spaces with no direct mapping. The only link is that a thread's
first comment carries the REST id as `databaseId`, so resolution lists every
thread on the PR and scans for that match.

Nothing is cached between calls: new threads appear as the reviewer bot
posts, and a stale listing would miss them.
"""

from __future__ import annotations

import logging

import requests
from github import GithubException

logger = logging.getLogger(__name__)

_THREADS_PAGE_SIZE = 100

_THREADS_QUERY = """
query($owner: String!, $repo: String!, $pr: Int!, $first: Int!, $after: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $pr) {
      reviewThreads(first: $first, after: $after) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          isResolved
          comments(first: 1) { nodes { databaseId } }
        }
      }
    }
  }
}
"""

_RESOLVE_MUTATION = """
mutation($threadId: ID!) {
  resolveReviewThread(input: { threadId: $threadId }) {
    thread { id isResolved }
  }
}
"""


def _first_comment_id(thread: dict) -> int | None:
    nodes = (thread.get("comments") or {}).get("nodes") or []
    return nodes[0].get("databaseId") if nodes else None


class ThreadResolver:
    """Marks review threads resolved via the GraphQL API.

    `requester` is PyGithub's Requester (`Github(...).requester`), used for
    its graphql_query() helper which raises GithubException on HTTP or
    GraphQL errors.
    """

    def __init__(self, requester):
        self._requester = requester

    def _query(self, query: str, variables: dict) -> dict:
        _, data = self._requester.graphql_query(query, variables)
        return data.get("data") or {}

    def iter_threads(self, owner: str, repo: str, pr_number: int):
        after = None
        while True:
            data = self._query(
                _THREADS_QUERY,
                {"owner": owner, "repo": repo, "pr": pr_number, "first": _THREADS_PAGE_SIZE, "after": after},
            )
            pull = (data.get("repository") or {}).get("pullRequest") or {}
            threads = pull.get("reviewThreads") or {}
            yield from threads.get("nodes") or []
            page = threads.get("pageInfo") or {}
            if not page.get("hasNextPage") or not page.get("endCursor"):
                return
            after = page["endCursor"]

    def find_thread_id(self, owner: str, repo: str, pr_number: int, comment_id: int) -> str | None:
        for thread in self.iter_threads(owner, repo, pr_number):
            if _first_comment_id(thread) == comment_id:
                return thread.get("id")
        return None

    def resolve(self, owner: str, repo: str, pr_number: int, comment_id: int) -> bool:
        """Resolve the thread started by comment_id. Never raises.

        Returns False when the thread cannot be found or the mutation fails;
        an unresolved thread is not a pipeline failure.
        """
        log_ctx = {"comment_id": comment_id, "repo": f"{owner}/{repo}", "pr": pr_number}
        try:
            thread_id = self.find_thread_id(owner, repo, pr_number, comment_id)
        except (GithubException, requests.RequestException) as e:
            logger.warning("Could not list review threads: %s", e, extra=log_ctx)
            return False
        if thread_id is None:
            logger.warning("Could not find review thread for comment", extra=log_ctx)
            return False

        try:
            self._query(_RESOLVE_MUTATION, {"threadId": thread_id})
        except (GithubException, requests.RequestException) as e:
            logger.warning("Failed to resolve thread %s: %s", thread_id, e, extra=log_ctx)
            return False
        logger.info("Resolved review thread %s", thread_id, extra=log_ctx)
        return True
