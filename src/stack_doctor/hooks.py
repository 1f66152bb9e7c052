"""Git hook installation for stack-doctor

Installs the deployment-server hooks: a post-merge hook that tags the
state before and after every pull, and a pre-push hook that refuses
pushes from the server.
"""
import logging
import stat
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, PackageLoader

from stack_doctor.core.config import Config, is_valid_tag_prefix

logger = logging.getLogger(__name__)

POST_MERGE = "post-merge"
PRE_PUSH = "pre-push"


class HookInstallError(Exception):
    """Exception raised when hooks cannot be installed"""

    pass


def _template_env() -> Environment:
    return Environment(
        loader=PackageLoader("stack_doctor", "templates"),
        keep_trailing_newline=True,
        autoescape=False,
    )


class HookInstaller:
    """Writes the stack-doctor hooks into a repository

    Re-running overwrites the hooks with the same content.
    """

    def __init__(self, project_path: str = ".", config: Optional[Config] = None):
        """Initialize installer

        Args:
            project_path: Repository root (must contain .git)
            config: Optional Config instance
        """
        self.project_path = Path(project_path).resolve()
        self.config = config or Config(str(self.project_path))
        self.git_dir = self.project_path / ".git"
        self.hooks_dir = self.git_dir / "hooks"
        self._env = _template_env()

    def _check_repo(self) -> None:
        if not self.git_dir.is_dir():
            raise HookInstallError(f".git directory not found in {self.project_path}")

    def render(self, hook: str, **context) -> str:
        """Render a hook body from its template

        Raises:
            HookInstallError: If the configured tag prefix is unsafe in a tag name
        """
        prefix = self.config.tag_prefix
        if not is_valid_tag_prefix(prefix):
            raise HookInstallError(f"Invalid tag prefix: {prefix!r}")
        template = self._env.get_template(f"{hook}.sh.j2")
        return template.render(tag_prefix=prefix, **context)

    def _write_hook(self, hook: str, content: str) -> Path:
        path = self.hooks_dir / hook
        path.write_text(content)
        mode = path.stat().st_mode
        path.chmod(mode | stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH)
        logger.debug(f"Wrote hook {path}")
        return path

    def install(self) -> List[Path]:
        """Install the backup-tag and push-blocking hooks

        Returns:
            Paths of the written hooks

        Raises:
            HookInstallError: If the project is not a Git repository
        """
        self._check_repo()
        self.hooks_dir.mkdir(parents=True, exist_ok=True)

        return [
            self._write_hook(POST_MERGE, self.render(POST_MERGE)),
            self._write_hook(PRE_PUSH, self.render(PRE_PUSH, bypass_hint=True)),
        ]

    def install_push_blocker(self) -> List[Path]:
        """Install only the pre-push hook

        Raises:
            HookInstallError: If the project is not a Git repository
        """
        self._check_repo()
        self.hooks_dir.mkdir(parents=True, exist_ok=True)

        return [self._write_hook(PRE_PUSH, self.render(PRE_PUSH, bypass_hint=False))]
