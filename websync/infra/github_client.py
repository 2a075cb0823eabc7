"""
GitHub client infrastructure for websync.

Provides a clean abstraction over the GitHub operations the fork
workflow needs (who am I, fork a repository, open a pull request):
- Uses `gh` CLI when available for authentication
- Falls back to the REST API via requests with a token
"""

import subprocess
import os
import re
import logging
from typing import Optional, Dict, Any, Sequence, Tuple

import requests

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r'https?://\S+')


class GitHubClient:
    """
    GitHub client for forks and pull requests.

    Uses `gh` CLI for authentication when available,
    with fallback to direct API calls with token.

    Example:
        client = GitHubClient()
        fork_url = client.fork("modelearth", "localsite")
        if fork_url:
            print(f"Fork ready: {fork_url}")
    """

    def __init__(
        self,
        token: Optional[str] = None,
        host: str = "https://github.com",
        api_url: str = "https://api.github.com",
        timeout: int = 60,
    ):
        """
        Initialize GitHubClient.

        Args:
            token: GitHub token (defaults to WEBSYNC_GITHUB_TOKEN or GITHUB_TOKEN env var)
            host: Web host used to build repository URLs
            api_url: REST API base URL for the requests fallback
            timeout: Timeout in seconds for gh and HTTP calls
        """
        self.token = token or os.environ.get('WEBSYNC_GITHUB_TOKEN') or os.environ.get('GITHUB_TOKEN')
        self.host = host.rstrip('/')
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self._use_gh_cli: Optional[bool] = None
        self._login: Optional[str] = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @property
    def use_gh_cli(self) -> bool:
        if self._use_gh_cli is None:
            self._use_gh_cli = self._check_gh_cli()
        return self._use_gh_cli

    def _check_gh_cli(self) -> bool:
        """Check if gh CLI is available and authenticated."""
        try:
            result = subprocess.run(
                ['gh', 'auth', 'status'],
                capture_output=True,
                text=True,
                timeout=10
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return False

    def _gh(self, args: Sequence[str], cwd: Optional[str] = None) -> Tuple[Optional[str], int]:
        """Run a gh command, returning (stdout + stderr, returncode)."""
        try:
            result = subprocess.run(
                ['gh', *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
            if result.returncode != 0:
                logger.debug(f"gh {' '.join(args)} failed: {result.stderr.strip()}")
            output = (result.stdout or "") + (result.stderr or "")
            return output.strip(), result.returncode
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            logger.debug(f"gh call failed for {' '.join(args)}: {e}")
            return None, -1

    def _requests_api(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Call GitHub API using requests library."""
        if not self.token:
            logger.debug("No GitHub token available for REST fallback")
            return None

        url = f"{self.api_url}/{endpoint}"
        headers = {
            'Accept': 'application/vnd.github.v3+json',
            'User-Agent': 'websync',
            'Authorization': f'token {self.token}',
        }

        try:
            response = requests.request(method, url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"GitHub API request failed: {e}")
            return None

        if response.status_code in (200, 201, 202):
            return response.json()

        logger.warning(f"GitHub API error {response.status_code} for {method} {endpoint}")
        return None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def current_login(self) -> Optional[str]:
        """Login of the authenticated user, cached for the run."""
        if self._login:
            return self._login

        login = None
        if self.use_gh_cli:
            output, code = self._gh(['api', 'user', '--jq', '.login'])
            if code == 0 and output:
                login = output.splitlines()[0].strip()
        if not login:
            data = self._requests_api('GET', 'user')
            if data:
                login = data.get('login')

        self._login = login or None
        return self._login

    def fork(self, owner: str, name: str) -> Optional[str]:
        """
        Create a fork of owner/name, or find the existing one.

        Args:
            owner: Parent account
            name: Repository name

        Returns:
            Web URL of the fork (without .git), or None on failure
        """
        if self.use_gh_cli:
            output, code = self._gh(['repo', 'fork', f'{owner}/{name}', '--clone=false'])
            if code == 0:
                for match in URL_PATTERN.findall(output or ""):
                    url = match.rstrip('.,')
                    if url.rstrip('/').endswith(f'/{name}') and f'/{owner}/' not in url:
                        return url.rstrip('/')
                login = self.current_login()
                if login:
                    return f"{self.host}/{login}/{name}"
                return None

        data = self._requests_api('POST', f'repos/{owner}/{name}/forks')
        if data and data.get('html_url'):
            return data['html_url']
        return None

    def create_pull_request(
        self,
        title: str,
        body: str,
        base: str,
        head: str,
        repo: Optional[str] = None,
        cwd: Optional[str] = None,
    ) -> Optional[str]:
        """
        Open a pull request.

        Args:
            title: PR title
            body: PR body
            base: Branch the PR merges into
            head: Branch (or ``owner:branch``) with the changes
            repo: ``owner/name`` of the target repository; gh infers it from cwd when omitted
            cwd: Repository directory gh runs in

        Returns:
            URL of the new pull request, or None on failure
        """
        if self.use_gh_cli:
            args = ['pr', 'create', '--title', title, '--body', body, '--base', base, '--head', head]
            if repo:
                args.extend(['--repo', repo])
            output, code = self._gh(args, cwd=cwd)
            if code == 0:
                urls = URL_PATTERN.findall(output or "")
                return urls[-1] if urls else output
            return None

        if not repo:
            logger.warning("Cannot open a pull request without gh unless the target repository is known")
            return None
        data = self._requests_api('POST', f'repos/{repo}/pulls', {
            'title': title,
            'body': body,
            'base': base,
            'head': head,
        })
        if data:
            return data.get('html_url')
        return None
