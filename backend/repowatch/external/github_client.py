"""GitHub REST / GraphQL API 非同期クライアント。

httpx.AsyncClient を使用し、監視対象リポジトリの Issue / Discussion /
Pull Request と統計情報を取得する。各一覧は最新100件の1ページのみを取得する。
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from repowatch.core.exceptions import ExternalAPIError

logger = logging.getLogger(__name__)

_GITHUB_URL_PATTERN = re.compile(r"github\.com/([^/]+)/([^/]+)", re.IGNORECASE)

_DISCUSSIONS_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    discussions(first: 100, orderBy: {field: UPDATED_AT, direction: DESC}) {
      nodes {
        id
        number
        title
        body
        createdAt
        updatedAt
        author {
          login
        }
        url
      }
    }
  }
}
"""


def parse_github_url(url: str) -> tuple[str, str] | None:
    """GitHubのURLから (owner, repo) を取り出す。

    末尾の ``.git`` は取り除く。GitHubのURLでなければ None。
    """
    match = _GITHUB_URL_PATTERN.search(url or "")
    if match is None:
        return None
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        return None
    return owner, repo


def parse_github_datetime(value: str | None) -> datetime | None:
    """GitHubのISO 8601文字列 (末尾Z) をawareなdatetimeに変換する。"""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubClient:
    """GitHub API 非同期クライアント。

    Attributes:
        BASE_URL: GitHub API のベースURL。
    """

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """GitHubClientを初期化する。

        Args:
            token: GitHub Personal Access Token。
            transport: テスト用に差し替えるhttpxトランスポート。
        """
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=httpx.Timeout(30.0, connect=10.0),
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Public API Methods
    # ------------------------------------------------------------------

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        """リポジトリ情報を取得する。プロジェクト登録時の存在確認にも使用。

        Raises:
            ExternalAPIError: API呼び出しに失敗した場合。
        """
        response = await self._request("GET", f"/repos/{owner}/{repo}")
        return response.json()

    async def get_issues(
        self,
        owner: str,
        repo: str,
        since: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Issue一覧を取得する（Pull Requestは除外）。

        Args:
            owner: リポジトリオーナー。
            repo: リポジトリ名。
            since: この日時以降に更新されたIssueのみ取得。

        Returns:
            Issue情報のリスト。
        """
        params: dict[str, str] = {
            "state": "all",
            "sort": "updated",
            "direction": "desc",
            "per_page": "100",
        }
        if since is not None:
            params["since"] = since.isoformat()

        response = await self._request("GET", f"/repos/{owner}/{repo}/issues", params=params)
        # issues API はPRも返すため除外する
        return [issue for issue in response.json() if "pull_request" not in issue]

    async def get_discussions(self, owner: str, repo: str) -> list[dict[str, Any]]:
        """GraphQLでDiscussion一覧を取得する。

        Discussionが無効なリポジトリなど、取得に失敗した場合は空リストを返す。
        """
        try:
            response = await self._request(
                "POST",
                "/graphql",
                json={
                    "query": _DISCUSSIONS_QUERY,
                    "variables": {"owner": owner, "repo": repo},
                },
            )
            payload = response.json()
            repository = (payload.get("data") or {}).get("repository") or {}
            discussions = repository.get("discussions") or {}
            return discussions.get("nodes") or []
        except ExternalAPIError as e:
            logger.warning(
                "Discussions unavailable for %s/%s: %s", owner, repo, e.detail,
            )
            return []

    async def get_pull_requests(
        self,
        owner: str,
        repo: str,
        since: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Pull Request一覧を取得する。

        Args:
            owner: リポジトリオーナー。
            repo: リポジトリ名。
            since: この日時より後に更新されたPRでフィルタ（クライアント側）。

        Returns:
            PR情報のリスト。
        """
        params: dict[str, str] = {
            "state": "all",
            "sort": "updated",
            "direction": "desc",
            "per_page": "100",
        }
        response = await self._request("GET", f"/repos/{owner}/{repo}/pulls", params=params)
        prs: list[dict[str, Any]] = response.json()

        # pulls API は since パラメータを持たないため、クライアント側でフィルタ
        if since is not None:
            prs = [
                pr
                for pr in prs
                if (updated := parse_github_datetime(pr.get("updated_at"))) is not None
                and updated > since
            ]
        return prs

    async def get_repository_stats(
        self,
        owner: str,
        repo: str,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """リポジトリの統計スナップショット用データを取得する。

        Returns:
            ``RepositoryStats`` のカラムに対応するキーを持つ辞書。
        """
        now = now or datetime.now(timezone.utc)
        repo_data = await self.get_repository(owner, repo)

        contributors_resp = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/contributors",
            params={"per_page": "100"},
        )
        # 空リポジトリでは204が返る
        contributors = contributors_resp.json() if contributors_resp.content else []

        commits_resp = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/commits",
            params={
                "since": (now - timedelta(days=7)).isoformat(),
                "per_page": "100",
            },
        )
        commits = commits_resp.json() if commits_resp.content else []
        authors = {
            (c.get("author") or {}).get("login")
            for c in commits
            if (c.get("author") or {}).get("login")
        }

        return {
            "stars": repo_data.get("stargazers_count", 0),
            "forks": repo_data.get("forks_count", 0),
            "watchers": repo_data.get("subscribers_count", repo_data.get("watchers_count", 0)),
            "open_issues": repo_data.get("open_issues_count", 0),
            "commits_last_week": len(commits),
            "unique_authors_last_week": len(authors),
            "contributors_count": len(contributors),
            "top_contributors": [
                {"login": c.get("login"), "contributions": c.get("contributions", 0)}
                for c in contributors[:10]
                if c.get("login")
            ],
        }

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """共通HTTPリクエストメソッド。

        Args:
            method: HTTPメソッド。
            url: リクエストURL（相対パス）。
            **kwargs: httpx.AsyncClient.request に渡す追加引数。

        Returns:
            HTTPレスポンス。

        Raises:
            ExternalAPIError: 通信失敗、またはエラーステータスの場合。
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("GitHub API request failed: %s %s - %s", method, url, str(e))
            raise ExternalAPIError(detail=f"GitHub API request failed: {e}")

        if response.status_code == 404:
            raise ExternalAPIError(detail=f"GitHub resource not found: {url}")

        if response.status_code >= 400:
            raise ExternalAPIError(
                detail=(
                    f"GitHub API error {response.status_code}: "
                    f"{response.text[:200]}"
                )
            )

        # GraphQLはエラーでも200を返す
        if url == "/graphql":
            errors = response.json().get("errors")
            if errors:
                raise ExternalAPIError(
                    detail=f"GitHub GraphQL error: {errors[0].get('message', errors)}"
                )

        return response

    async def close(self) -> None:
        """HTTPクライアントセッションを閉じる。"""
        await self._client.aclose()
        logger.debug("GitHubClient session closed")

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
