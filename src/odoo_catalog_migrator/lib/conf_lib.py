"""Config File Handler.

This module handles reading the connection configuration file and
building the remote catalog client, either over the REST JSON API or
over an odoo-client-lib connection.
"""

import configparser
from dataclasses import dataclass
from typing import Any

import odoolib

from ..logging_config import log
from .client import CatalogClient
from .rest_client import RestCatalogClient
from .rpc_client import RpcCatalogClient

REST_PROTOCOLS = ("rest", "rests")


@dataclass
class EngineSettings:
    """Tunables of the migration engine, read from the ``[Migration]`` section."""

    state_file: str = ".odoo_migration_state.json"
    throttle_delay: float = 0.2
    base_retry_delay: float = 1.0
    max_retries: int = 3
    max_logs: int = 500
    template_policy: str = "create"


def _read_config(config_file: str) -> configparser.ConfigParser:
    config = configparser.ConfigParser()
    if not config.read(config_file):
        log.error(f"Configuration file not found or is empty: {config_file}")
        raise FileNotFoundError(f"Configuration file not found: {config_file}")
    return config


def _connection_details(config_file: str) -> dict[str, Any]:
    config = _read_config(config_file)
    try:
        return dict(config["Connection"])
    except KeyError:
        log.error(f"Configuration file '{config_file}' has no [Connection] section.")
        raise


def get_connection_from_dict(config: dict[str, Any]) -> Any:
    """Get connection from a dictionary of connection details.

    Args:
        config: The ``[Connection]`` values (hostname, database, login, ...).

    Returns:
        Any: An initialized odoo-client-lib connection.
    """
    conn_details = {
        key: value
        for key, value in config.items()
        if key not in ("timeout", "transport_retries")
    }
    try:
        if "port" in conn_details:
            conn_details["port"] = int(conn_details["port"])
        if "uid" in conn_details:
            # The OdooClient expects the user ID as 'user_id'
            conn_details["user_id"] = int(conn_details.pop("uid"))

        log.info(f"Connecting to Odoo server at {conn_details.get('hostname')}...")
        connection = odoolib.get_connection(**conn_details)
        log.info("Connection successful.")
        return connection
    except (KeyError, ValueError) as e:
        log.error(f"Connection details are missing a key or malformed: {e}")
        raise
    except Exception as e:
        log.error(f"An unexpected error occurred while connecting to Odoo: {e}")
        raise


def get_connection_from_config(config_file: str) -> Any:
    """Get connection from config.

    Reads an Odoo connection configuration file and returns an
    initialized odoo-client-lib connection.

    Args:
        config_file (str): The path to the connection.conf file.
    """
    return get_connection_from_dict(_connection_details(config_file))


def _base_url(details: dict[str, Any]) -> str:
    hostname = details["hostname"]
    if hostname.startswith(("http://", "https://")):
        return hostname
    scheme = "https" if details.get("protocol", "rest") == "rests" else "http"
    port = details.get("port")
    return f"{scheme}://{hostname}:{int(port)}" if port else f"{scheme}://{hostname}"


def get_client_from_dict(config: dict[str, Any]) -> CatalogClient:
    """Builds the catalog client matching the configured protocol."""
    protocol = str(config.get("protocol", "rest")).lower()
    try:
        transport_retries = int(config.get("transport_retries", 2))
        if protocol in REST_PROTOCOLS:
            return RestCatalogClient(
                base_url=_base_url(config),
                login=config["login"],
                password=config.get("password", ""),
                database=config.get("database", ""),
                timeout=float(config.get("timeout", 30)),
                transport_retries=transport_retries,
            )
    except (KeyError, ValueError) as e:
        log.error(f"Connection details are missing a key or malformed: {e}")
        raise

    connection = get_connection_from_dict(config)
    return RpcCatalogClient(connection, transport_retries=transport_retries)


def get_client_from_config(config_file: str) -> CatalogClient:
    """Reads the connection file and builds the matching catalog client."""
    return get_client_from_dict(_connection_details(config_file))


def get_engine_settings(config_file: str) -> EngineSettings:
    """Reads the optional ``[Migration]`` section.

    Missing keys fall back to the defaults of :class:`EngineSettings`.
    """
    config = _read_config(config_file)
    settings = EngineSettings()
    if not config.has_section("Migration"):
        return settings

    section = config["Migration"]
    try:
        settings.state_file = section.get("state_file", settings.state_file)
        settings.throttle_delay = section.getfloat("throttle_delay", settings.throttle_delay)
        settings.base_retry_delay = section.getfloat(
            "base_retry_delay", settings.base_retry_delay
        )
        settings.max_retries = section.getint("max_retries", settings.max_retries)
        settings.max_logs = section.getint("max_logs", settings.max_logs)
        settings.template_policy = section.get("template_policy", settings.template_policy)
    except ValueError as e:
        log.error(f"Configuration file '{config_file}' has a malformed value: {e}")
        raise
    return settings
