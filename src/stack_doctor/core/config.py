"""Configuration parser for stack-doctor

Handles loading, validation, and default values for .stack-doctor.yml
"""
from pathlib import Path
from typing import Any, Dict, List, Optional
import copy
import re

# Safe inside a quoted shell assignment and a git tag name
TAG_PREFIX_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


def is_valid_tag_prefix(prefix: Any) -> bool:
    """Check a backup tag prefix is usable in a hook script and a tag name"""
    return isinstance(prefix, str) and bool(TAG_PREFIX_RE.fullmatch(prefix)) and ".." not in prefix


class ConfigurationError(Exception):
    """Exception raised for invalid configuration"""

    pass


class Config:
    """Configuration manager for stack-doctor

    Loads configuration from .stack-doctor.yml with defaults matching a
    CentOS PHP-FPM / nginx deployment server.
    """

    CONFIG_FILENAME = ".stack-doctor.yml"

    # Default configuration template
    DEFAULT_CONFIG: Dict[str, Any] = {
        "version": "1.0",
        "system": {
            "release_files": ["/etc/centos-release", "/etc/redhat-release"],
        },
        "php_fpm": {
            "process_name": "php-fpm",
            "package_filter": "php-fpm",
            "pool_configs": [
                "/etc/php-fpm.d/www.conf",
                "/etc/opt/remi/*/php-fpm.d/www.conf",
            ],
            "reserved_memory_mb": 500,
            "top_processes": 3,
            "status_timeout": 2,
        },
        "redis": {
            "cli_paths": ["/data/redis/bin/redis-cli"],
            "timeout": 2,
        },
        "storage": {
            "disk_rows": 3,
            "vmstat_samples": 3,
            "iowait_threshold": 15,
        },
        "database": {
            "timeout": 2,
            "long_query_tip": 1.0,
        },
        "traffic": {
            "log_dirs": ["/var/www/efficiense/logs/nginx"],
            "log_pattern": "*.access.log",
            "fallback_dirs": ["/var/log/nginx", "/var/log/httpd"],
            "fallback_name": "access.log",
            "marker": "index.php",
            "tail_lines": 200000,
            "default_duration": "10m",
        },
        "logs": {
            "slow_log_lines": 10,
        },
        "trace": {
            "seconds": 5,
            "output_file": "fpm_trace.log",
            "preview_lines": 15,
        },
        "hooks": {
            "tag_prefix": "backup-pull",
        },
    }

    def __init__(self, project_path: str = ".", config_file: Optional[str] = None):
        """Initialize configuration

        Args:
            project_path: Directory searched for .stack-doctor.yml
            config_file: Explicit configuration file, overrides the search
        """
        self.project_path = Path(project_path).resolve()
        if config_file:
            self.config_file = Path(config_file).expanduser().resolve()
        else:
            self.config_file = self.project_path / self.CONFIG_FILENAME
        self._config: Optional[Dict[str, Any]] = None

    def load(self) -> Dict[str, Any]:
        """Load and merge configuration

        Returns:
            Merged configuration dict with defaults applied

        Raises:
            ConfigurationError: If the file is not valid YAML mapping
        """
        if self._config is None:
            config = copy.deepcopy(self.DEFAULT_CONFIG)

            if self.config_file.exists():
                import yaml

                try:
                    user_config = yaml.safe_load(self.config_file.read_text())
                except yaml.YAMLError as e:
                    raise ConfigurationError(f"Invalid YAML in {self.config_file}: {e}") from e

                if user_config:
                    if not isinstance(user_config, dict):
                        raise ConfigurationError(
                            f"Expected a mapping in {self.config_file}"
                        )
                    config = self._merge_config(config, user_config)

            self._config = config

        return self._config

    def _merge_config(
        self, default: Dict[str, Any], user: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Deep merge user config with defaults"""
        result = copy.deepcopy(default)

        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    @property
    def process_name(self) -> str:
        """PHP-FPM process name as shown by ps"""
        return self.get("php_fpm.process_name", "php-fpm")

    @property
    def pool_configs(self) -> List[str]:
        """Glob patterns for the pool configuration file"""
        return self.get("php_fpm.pool_configs", [])

    @property
    def reserved_memory_mb(self) -> int:
        return int(self.get("php_fpm.reserved_memory_mb", 500))

    @property
    def tag_prefix(self) -> str:
        """Prefix of the backup tags created by the post-merge hook"""
        return self.get("hooks.tag_prefix", "backup-pull")

    @property
    def traffic_marker(self) -> str:
        """Substring of the request target counted as a matched request"""
        return self.get("traffic.marker", "index.php")

    @property
    def tail_lines(self) -> int:
        """Trailing segment size for access log scans"""
        return int(self.get("traffic.tail_lines", 200000))

    @property
    def default_duration(self) -> str:
        return str(self.get("traffic.default_duration", "10m"))

    @property
    def trace_seconds(self) -> float:
        return float(self.get("trace.seconds", 5))

    @property
    def trace_file(self) -> Path:
        """Transcript written by the deep trace, relative to the working directory"""
        return Path(self.get("trace.output_file", "fpm_trace.log"))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot-notation key

        Args:
            key: Dot-notation key (e.g., "traffic.marker")
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        config = self._config or self.load()
        keys = key.split(".")

        value = config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def validate(self) -> List[str]:
        """Validate current configuration

        Returns:
            List of validation errors (empty if valid)
        """
        from stack_doctor.traffic import parse_duration

        errors = []
        self.load()

        for key in ("traffic.tail_lines", "trace.seconds", "trace.preview_lines",
                    "logs.slow_log_lines", "redis.timeout", "database.timeout"):
            value = self.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                errors.append(f"'{key}' must be a positive number")

        if not isinstance(self.get("traffic.marker"), str) or not self.get("traffic.marker"):
            errors.append("'traffic.marker' must be a non-empty string")

        if parse_duration(self.default_duration).fallback:
            errors.append(f"'traffic.default_duration' is not a valid duration: {self.default_duration}")

        if not is_valid_tag_prefix(self.get("hooks.tag_prefix")):
            errors.append(
                "'hooks.tag_prefix' must start with a letter or digit and contain only "
                "letters, digits, '.', '_' and '-' (no '..')"
            )

        if not isinstance(self.pool_configs, list):
            errors.append("'php_fpm.pool_configs' must be a list")

        return errors

    def ensure_valid(self) -> "Config":
        """Raise ConfigurationError when validate() reports problems"""
        errors = self.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))
        return self
