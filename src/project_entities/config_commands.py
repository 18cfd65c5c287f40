"""Configuration commands for the pe CLI."""

import dataclasses

from cyclopts import App

from project_entities.config import SETTING_KEYS, ProjectSettings, get_config, parse_setting

config_app = App(name="config", help="Manage project settings")


def _scope(global_: bool) -> str:
    return "global" if global_ else "local"


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a project setting after checking its value.

    Args:
        key: One of approval_mode, automation_level, lock_timeout, integrity_checks
        value: New value, e.g. strict, auto, 2.5 or false
        global_: If True, set in global config. If False, set in the project's config.

    Raises:
        ValueError: If the key is unknown or the value is invalid for it
    """
    parse_setting(key, value)
    get_config(use_global=global_).set(key, value)
    print(f"Set {key} = {value} ({_scope(global_)})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Remove a setting so its default (or the global value) applies again.

    Unknown keys can still be removed, which clears out stale entries.
    """
    get_config(use_global=global_).unset(key)
    print(f"Unset {key} ({_scope(global_)})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Show the configured value of a setting."""
    value = get_config(use_global=global_).get(key)
    if value is None:
        print(f"{key} is not set")
    else:
        print(f"{key} = {value}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """List every setting with its effective value.

    Settings that are not configured show their default. Keys the project
    does not recognize are listed separately.

    Args:
        global_: If True, list global config only. If False, list merged config.
    """
    configured = get_config(use_global=global_).list()
    defaults = dataclasses.asdict(ProjectSettings())

    print(f"Settings ({_scope(global_)}):\n")
    for key in SETTING_KEYS:
        if key in configured:
            print(f"{key} = {configured[key]}")
        else:
            print(f"{key} = {defaults[key]} (default)")

    unknown = [key for key in configured if key not in SETTING_KEYS]
    if unknown:
        print("\nUnrecognized keys:")
        for key in unknown:
            print(f"{key} = {configured[key]}")
