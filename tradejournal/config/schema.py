"""
Journal configuration.

`config.yaml` names the journal owner and account, where trades and
session snapshots are stored, how imports are batched and tagged, the
seed list of hashtags, the report directory and the optional MetaTrader
5 login.  `load_config()` merges the file over the defaults below, so
any section or key may be left out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any
import yaml


DEFAULT_HASHTAGS = [
    "setup", "momentum", "breakout", "retracement", "technical", "fundamental",
    "news", "mistake", "perfecttrade", "patience", "fakeout",
]


@dataclass
class StorageConfig:
    """Where journal data lives on disk.

    Attributes
    ----------
    data_dir : str
        Directory holding the trade repository and session snapshots.
    trades_file : str
        File name of the JSON trade repository inside `data_dir`.
    session_file : str
        File name pattern of the per-user session snapshot.  ``{user}``
        is replaced by the user id.
    """

    data_dir: str = "data"
    trades_file: str = "trades.json"
    session_file: str = "session_{user}.json"

    @property
    def trades_path(self) -> str:
        return str(Path(self.data_dir) / self.trades_file)

    def session_path(self, user_id: str) -> str:
        return str(Path(self.data_dir) / self.session_file.format(user=user_id))


@dataclass
class ImportConfig:
    """Trade import settings.

    Attributes
    ----------
    batch_size : int
        Number of trades written to the repository per insert call.
    default_hashtags : list of str
        Tags attached to every trade imported from a broker export.
    """

    batch_size: int = 50
    default_hashtags: List[str] = field(default_factory=lambda: ["imported"])


@dataclass
class ReportingConfig:
    """Output location for generated reports."""

    out_dir: str = "results"


@dataclass
class MT5Config:
    """Holds parameters required to connect to a MetaTrader 5 terminal.

    Attributes
    ----------
    login : int
        Account login number.
    password : str
        Password for the account.
    server : str
        Broker server name (e.g. ``Bidget-MT5-Live``).
    path : str
        File system path to the MetaTrader 5 terminal executable
        (`terminal64.exe`).  Required for history synchronisation.
    """

    login: int = 0
    password: str = ""
    server: str = ""
    path: str = ""


@dataclass
class Config:
    """Root configuration for the trade journal.

    Attributes
    ----------
    user_id : str
        Journal owner used when no ``--user`` is given on the command line.
    account : str
        Trading account name stamped on new trades.
    storage : StorageConfig
        Repository and session file locations.
    imports : ImportConfig
        Import batching and tagging.
    hashtags : list of str
        Seed list of known hashtags for a fresh session.
    reporting : ReportingConfig
        Report output configuration.
    mt5 : MT5Config
        MetaTrader 5 connection configuration.
    """

    user_id: str = "default"
    account: str = "Main Trading"
    storage: StorageConfig = field(default_factory=StorageConfig)
    imports: ImportConfig = field(default_factory=ImportConfig)
    hashtags: List[str] = field(default_factory=lambda: list(DEFAULT_HASHTAGS))
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    mt5: MT5Config = field(default_factory=MT5Config)


def _merge_dict(defaults: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries.

    The values in `override` take precedence over those in `defaults`.
    This helper is used when loading YAML into nested dataclasses.
    """
    result: Dict[str, Any] = defaults.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: str) -> Config:
    """Load a configuration file from the given YAML path.

    Parameters
    ----------
    path : str
        Path to the YAML file.  A missing file yields the defaults.

    Returns
    -------
    Config
        A populated configuration object.  Missing fields are filled with
        sensible defaults defined in the dataclasses.
    """
    raw: Dict[str, Any] = {}
    if Path(path).exists():
        with open(path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}

    defaults: Dict[str, Any] = {
        'user_id': "default",
        'account': "Main Trading",
        'storage': {
            'data_dir': "data",
            'trades_file': "trades.json",
            'session_file': "session_{user}.json",
        },
        'imports': {
            'batch_size': 50,
            'default_hashtags': ["imported"],
        },
        'hashtags': list(DEFAULT_HASHTAGS),
        'reporting': {
            'out_dir': "results",
        },
        'mt5': {
            'login': 0,
            'password': "",
            'server': "",
            'path': "",
        },
    }

    merged = _merge_dict(defaults, raw)

    imports = merged['imports']
    batch_size = int(imports.get('batch_size', 50))
    if batch_size < 1:
        raise ValueError(f"imports.batch_size must be positive, got {batch_size}")

    cfg = Config(
        user_id=str(merged.get('user_id', 'default')),
        account=str(merged.get('account', 'Main Trading')),
        storage=StorageConfig(**merged['storage']),
        imports=ImportConfig(
            batch_size=batch_size,
            default_hashtags=list(imports.get('default_hashtags') or []),
        ),
        hashtags=list(merged.get('hashtags') or []),
        reporting=ReportingConfig(**merged['reporting']),
        mt5=MT5Config(**merged['mt5']),
    )
    return cfg
