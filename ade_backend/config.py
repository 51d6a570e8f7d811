"""
Configuration parser for ADE Planning.

Handles TOML file parsing into an immutable Config value. Every section is
optional; missing keys fall back to the built-in defaults, which target the
Université de Tours CAS and ADE servers.
"""

import tomllib
import os
import sys
from pathlib import Path
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 11; SM-G973F) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.120 Mobile Safari/537.36"
)

# Class groups known to ADE, by academic-year cohort
DEFAULT_COHORTS = {
    "BUT1": (10767, 10768, 10769, 10770, 10771, 10772, 10773, 10776, 10448),
    "BUT2": (10485, 10515, 10896, 11032, 10464, 10932),
    "BUT3": (10538, 10459, 10982, 11014, 10969, 10970),
}


@dataclass(frozen=True)
class ClassGroupCatalog:
    """Fixed set of class group ids, partitioned by cohort."""
    cohorts: Mapping[str, tuple[int, ...]] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_COHORTS))
    )

    def all_ids(self) -> tuple[int, ...]:
        """All class ids, cohort by cohort, in declaration order."""
        ids: list[int] = []
        for cohort_ids in self.cohorts.values():
            ids.extend(cohort_ids)
        return tuple(ids)

    def __len__(self) -> int:
        return len(self.all_ids())

    @classmethod
    def from_dict(cls, data: dict) -> 'ClassGroupCatalog':
        cohorts = {}
        for name, ids in data.items():
            if not isinstance(ids, list):
                raise ValueError(f"Catalog cohort '{name}' must be a list of ids")
            cohorts[name] = tuple(int(i) for i in ids)
        if not cohorts:
            raise ValueError("Catalog must contain at least one cohort")
        return cls(cohorts=MappingProxyType(cohorts))


@dataclass(frozen=True)
class ServerConfig:
    """CAS and ADE endpoints plus the GWT-RPC protocol constants."""
    cas_login_url: str = "https://cas.univ-tours.fr/cas/login"
    service_url: str = "https://ade.univ-tours.fr/direct/myplanning.jsp"
    module_base: str = "https://ade.univ-tours.fr/direct/gwtdirectplanning/"
    permutation: str = "30B3E0B5D2C57008E936E550EA0E3F25"
    login_policy: str = "217140C31DF67EF6BA02D106930F5725"
    core_policy: str = "748880AB5D6D59CC4770FCCE7567EA63"
    # Shared read-only student account
    username: str = "ade-etudiant"
    password: str = "test"
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def cas_origin(self) -> str:
        scheme, _, rest = self.cas_login_url.partition("://")
        return f"{scheme}://{rest.split('/', 1)[0]}"


@dataclass(frozen=True)
class NetworkConfig:
    """Timeouts (seconds) and connectivity check settings."""
    session_timeout: float = 15.0
    validation_timeout: float = 8.0
    connectivity_url: str = "https://connectivitycheck.gstatic.com/generate_204"
    connectivity_status: int = 204
    connectivity_timeout: float = 5.0


@dataclass(frozen=True)
class RetryConfig:
    """Linear backoff: after failed attempt k, wait k * base_delay seconds."""
    max_attempts: int = 10
    base_delay: float = 0.5


@dataclass(frozen=True)
class CacheConfig:
    """Cache fallback policy."""
    # Oldest cache age (days) still served after a failed regeneration; 0 disables
    max_fallback_age_days: float = 120.0


@dataclass(frozen=True)
class Config:
    """Main configuration container for ADE Planning."""

    state_file: Path
    timezone: str = "Europe/Paris"
    server: ServerConfig = field(default_factory=ServerConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    catalog: ClassGroupCatalog = field(default_factory=ClassGroupCatalog)

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get the default configuration file path."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        return Path(xdg_config) / 'ade-planning' / 'ade-planning.toml'

    @classmethod
    def get_default_state_path(cls) -> Path:
        """Get the default state file path."""
        xdg_state = os.environ.get('XDG_STATE_HOME', os.path.expanduser('~/.local/state'))
        return Path(xdg_state) / 'ade-planning' / 'state.json'

    @classmethod
    def default(cls) -> 'Config':
        return cls(state_file=cls.get_default_state_path())

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """
        Load configuration from a TOML file.

        An explicitly given path must exist. When no path is given and the
        default file is absent, the built-in defaults are used.
        """
        explicit = config_path is not None
        if config_path is None:
            config_path = cls.get_default_config_path()

        if not config_path.exists():
            if explicit:
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls.default()

        with open(config_path, 'rb') as f:
            data = tomllib.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        """Build a Config from parsed TOML data."""
        general = data.get('General', {})
        state_file_str = general.get('state_file', str(cls.get_default_state_path()))
        state_file = Path(os.path.expanduser(state_file_str))

        server_data = data.get('Server', {})
        server = ServerConfig(
            cas_login_url=server_data.get('cas_login_url', ServerConfig.cas_login_url),
            service_url=server_data.get('service_url', ServerConfig.service_url),
            module_base=server_data.get('module_base', ServerConfig.module_base),
            permutation=server_data.get('permutation', ServerConfig.permutation),
            login_policy=server_data.get('login_policy', ServerConfig.login_policy),
            core_policy=server_data.get('core_policy', ServerConfig.core_policy),
            username=server_data.get('username', ServerConfig.username),
            password=server_data.get('password', ServerConfig.password),
            user_agent=server_data.get('user_agent', ServerConfig.user_agent),
        )
        if not server.module_base.endswith('/'):
            raise ValueError(f"Server.module_base must end with '/': {server.module_base}")

        network_data = data.get('Network', {})
        network = NetworkConfig(
            session_timeout=float(network_data.get('session_timeout', NetworkConfig.session_timeout)),
            validation_timeout=float(network_data.get('validation_timeout', NetworkConfig.validation_timeout)),
            connectivity_url=network_data.get('connectivity_url', NetworkConfig.connectivity_url),
            connectivity_status=int(network_data.get('connectivity_status', NetworkConfig.connectivity_status)),
            connectivity_timeout=float(network_data.get('connectivity_timeout', NetworkConfig.connectivity_timeout)),
        )

        retry_data = data.get('Retry', {})
        retry = RetryConfig(
            max_attempts=int(retry_data.get('max_attempts', RetryConfig.max_attempts)),
            base_delay=float(retry_data.get('base_delay', RetryConfig.base_delay)),
        )
        if retry.max_attempts < 1:
            raise ValueError("Retry.max_attempts must be at least 1")

        cache_data = data.get('Cache', {})
        cache = CacheConfig(
            max_fallback_age_days=float(
                cache_data.get('max_fallback_age_days', CacheConfig.max_fallback_age_days)
            ),
        )

        catalog_data = data.get('Catalog')
        catalog = ClassGroupCatalog.from_dict(catalog_data) if catalog_data else ClassGroupCatalog()

        config = cls(
            state_file=state_file,
            timezone=general.get('timezone', 'Europe/Paris'),
            server=server,
            network=network,
            retry=retry,
            cache=cache,
            catalog=catalog,
        )
        print(f"DEBUG: Loaded configuration ({len(catalog)} class groups)", file=sys.stderr)
        return config
