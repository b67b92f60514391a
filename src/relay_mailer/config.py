# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving, and validating relay-mailer configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/relay-mailer/  (default: ~/.config/relay-mailer/)
#
# Files:
#   - config.toml: Relay accounts and the default account
#
# Example config.toml:
#
#   [general]
#   default_account = "office"
#
#   [accounts.office]
#   host = "smtp.office365.com"
#   user = "jane@example.com"
#   mail_from = "Jane Doe <jane@example.com>"
#   security = "tls"            # "tls", "ssl" or "none"
#   verify_certificate = true
#   bcc = "archive@example.com"
#
# Passwords live in the system keyring, never in this file.
# =============================================================================

import os
import tomllib  # Built into Python 3.11+
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w  # For writing TOML (tomllib is read-only)

from relay_mailer.core import Account


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths
APP_NAME = "relay-mailer"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for relay-mailer.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/relay-mailer/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


# =============================================================================
# Configuration Data Structures
# =============================================================================

@dataclass
class Config:
    """
    Main configuration container for relay-mailer.

    Attributes:
        default_account: Name of the account used when none is given.
        accounts: Configured relay accounts, keyed by name.

    Usage:
        >>> config = Config.load()
        >>> print(config.accounts['office'].host)
        'smtp.office365.com'
    """
    default_account: str = ""
    accounts: dict[str, Account] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # File Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from the config file.

        If the file doesn't exist, returns default configuration.

        Args:
            path: Config file to read; defaults to the XDG location.

        Returns:
            Loaded Config object.

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = path or cls.config_file_path()

        if not config_path.exists():
            # No config file yet - return defaults
            return cls()

        # Load and parse the TOML file
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file: {e}") from e

        return cls._from_dict(data)

    def save(self, path: Path | None = None) -> None:
        """
        Save configuration to the config file.

        Creates the config directory if it doesn't exist.
        """
        config_path = path or self.config_file_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)

    def get_account(self, name: str | None = None) -> Account:
        """
        Return the named account, or the default one.

        Raises:
            ConfigError: If no such account is configured.
        """
        name = name or self.default_account
        if not name and len(self.accounts) == 1:
            name = next(iter(self.accounts))

        try:
            return self.accounts[name]
        except KeyError:
            raise ConfigError(
                f"No account named {name!r} in {self.config_file_path()}"
            ) from None

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create a Config object from a dictionary (parsed TOML).
        """
        config = cls()

        # General settings
        general = data.get("general", {})
        config.default_account = general.get("default_account", "")

        # Accounts - each key under [accounts] is an account name
        accounts_data = data.get("accounts", {})
        for name, acct_data in accounts_data.items():
            if not acct_data.get("host"):
                raise ConfigError(f"Account {name!r} has no host")
            try:
                config.accounts[name] = Account(
                    name=name,
                    host=acct_data["host"],
                    user=acct_data.get("user", ""),
                    mail_from=acct_data.get("mail_from", ""),
                    port=acct_data.get("port"),
                    security=acct_data.get("security", "tls"),
                    verify_certificate=acct_data.get("verify_certificate", True),
                    bcc=acct_data.get("bcc", ""),
                )
            except ValueError as e:
                raise ConfigError(f"Account {name!r}: {e}") from e

        return config

    def _to_dict(self) -> dict[str, Any]:
        """
        Convert Config to a dictionary for TOML serialization.
        """
        data: dict[str, Any] = {}

        data["general"] = {
            "default_account": self.default_account,
        }

        data["accounts"] = {}
        for name, account in self.accounts.items():
            entry: dict[str, Any] = {
                "host": account.host,
                "user": account.user,
                "mail_from": account.mail_from,
                "security": account.security.value,
                "verify_certificate": account.verify_certificate,
                "bcc": account.bcc,
            }
            # TOML has no null; an absent port means "default for security"
            if account.port is not None:
                entry["port"] = account.port
            data["accounts"][name] = entry

        return data


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """
    Print configuration paths for debugging.
    """
    print(f"Config:       {get_xdg_config_home()}")
    print(f"Config file:  {Config.config_file_path()}")
